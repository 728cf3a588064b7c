import os
from decimal import Decimal
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_database_url() -> str:
    """Get database URL, using absolute path for SQLite to avoid path resolution issues.

    SQLite is intended for local development only. Set DATABASE_URL to a
    PostgreSQL connection string for shared deployments.
    """
    db_url = os.getenv("DATABASE_URL", "")
    if db_url:
        logger.info(f"Using DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "run_tracker.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.warning(f"Using SQLite database (LOCAL DEV ONLY): {db_url}")
    return db_url


class Settings(BaseSettings):
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="DATABASE_URL",
    )
    organization_timezone: str = Field(
        default="Indian/Maldives",
        validation_alias="ORGANIZATION_TIMEZONE",
        description="IANA timezone that defines the organization's calendar day",
    )
    max_entries_per_day: int = Field(default=2, ge=1, validation_alias="MAX_ENTRIES_PER_DAY")
    daily_distance_ceiling_km: Decimal = Field(
        default=Decimal("10.00"),
        gt=0,
        validation_alias="DAILY_DISTANCE_CEILING_KM",
        description="Daily distance cap per submitter, also the per-entry cap",
    )
    evidence_required: bool = Field(default=True, validation_alias="EVIDENCE_REQUIRED")
    evidence_max_bytes: int = Field(default=5 * 1024 * 1024, gt=0, validation_alias="EVIDENCE_MAX_BYTES")
    staff_prefixes: str = Field(
        default="C",
        validation_alias="STAFF_PREFIXES",
        description="Non-numeric leading characters kept during service number normalization",
    )
    super_admin_service_number: str = Field(default="5568", validation_alias="SUPER_ADMIN_SERVICE_NUMBER")
    admin_master_password: str = Field(default="", validation_alias="ADMIN_MASTER_PASSWORD")
    auth_secret_key: str = Field(default="dev-secret-key-change-in-production", validation_alias="AUTH_SECRET_KEY")
    auth_algorithm: str = Field(default="HS256", validation_alias="AUTH_ALGORITHM")
    auth_token_expire_hours: int = Field(default=12, gt=0, validation_alias="AUTH_TOKEN_EXPIRE_HOURS")
    smtp_host: str = Field(default="", validation_alias="SMTP_HOST")
    smtp_port: int = Field(default=587, validation_alias="SMTP_PORT")
    smtp_user: str = Field(default="", validation_alias="SMTP_USER")
    smtp_password: str = Field(default="", validation_alias="SMTP_PASSWORD")
    notification_sender: str = Field(
        default="",
        validation_alias="NOTIFICATION_SENDER",
        description="From address of admin notifications. Defaults to SMTP_USER.",
    )
    admin_review_url: str = Field(default="", validation_alias="ADMIN_REVIEW_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON", description="Write the log file as JSON lines")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("daily_distance_ceiling_km")
    @classmethod
    def validate_ceiling_precision(cls, value: Decimal) -> Decimal:
        """Ceiling is expressed in the same two-decimal precision as entries."""
        return value.quantize(Decimal("0.01"))

    @field_validator("staff_prefixes")
    @classmethod
    def validate_staff_prefixes(cls, value: str) -> str:
        """Staff prefixes must be single non-numeric characters."""
        cleaned = "".join(ch.upper() for ch in value if not ch.isspace() and ch != ",")
        if any(ch.isdigit() for ch in cleaned):
            raise ValueError("STAFF_PREFIXES cannot contain digits")
        return cleaned

    @field_validator("auth_secret_key")
    @classmethod
    def validate_secret_key(cls, value: str) -> str:
        if value == "dev-secret-key-change-in-production":
            logger.warning("AUTH_SECRET_KEY is not set. Admin tokens are signed with the development key.")
        return value


settings = Settings()
