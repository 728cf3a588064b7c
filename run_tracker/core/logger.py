"""Logger configuration for the run tracker service.

Every record passes through a patcher that masks password and bearer-token
values, so a credential interpolated into a message never reaches a sink.
"""

import re
import sys
from pathlib import Path

from loguru import logger

_SECRET_PATTERNS = [
    (re.compile(r"(password[\"']?\s*[=:]\s*[\"']?)[^\s,\"'}]+", re.IGNORECASE), r"\1***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9\-_.=]+"), r"\1***"),
]


def redact(message: str) -> str:
    for pattern, replacement in _SECRET_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def _redact_record(record) -> None:
    record["message"] = redact(record["message"])


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "14 days",
    serialize_file: bool = False,
) -> None:
    """Configure loguru with a console sink and an optional rotating file sink.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. If None, only console logging.
        rotation: Log rotation size (e.g., "10 MB", "1 day")
        retention: Log retention period (e.g., "7 days", "1 month")
        serialize_file: Write the file sink as JSON lines for log shippers
    """
    logger.remove()
    logger.configure(patcher=_redact_record)

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize_file,
            backtrace=True,
            # Locals would expose request bodies (passwords, evidence bytes)
            diagnose=False,
        )

    logger.info(f"Logger initialized with level={level}, file={log_file or '-'}")
