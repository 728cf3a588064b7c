"""Email notification sent to admins when a new run is waiting for review.

Delivery is best-effort. SMTP and roster failures are logged and never change
the outcome of the submission that triggered them.
"""

from __future__ import annotations

import smtplib
from collections.abc import Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from loguru import logger

from run_tracker.config.settings import settings
from run_tracker.errors import StoreUnavailableError
from run_tracker.roster.directory import IdentityDirectory
from run_tracker.runs.types import RunEntryView

SmtpFactory = Callable[[str, int], smtplib.SMTP]


class AdminNotifier:
    def __init__(
        self,
        directory: IdentityDirectory,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        sender: str = "",
        review_url: str = "",
        smtp_factory: SmtpFactory = smtplib.SMTP,
    ):
        self.directory = directory
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.sender = sender or smtp_user
        self.review_url = review_url
        self._smtp_factory = smtp_factory

    @classmethod
    def from_settings(cls, directory: IdentityDirectory) -> AdminNotifier:
        return cls(
            directory,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            sender=settings.notification_sender,
            review_url=settings.admin_review_url,
        )

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    def notify_new_run(self, entry: RunEntryView) -> int:
        """Email every admin on the roster about an entry waiting for review.

        Args:
            entry: The entry that was just appended

        Returns:
            Number of admins the message was delivered to
        """
        if not self.configured:
            logger.debug("[NOTIFY] SMTP not configured, skipping new run notification")
            return 0

        try:
            recipients = self.directory.admin_emails()
        except StoreUnavailableError as e:
            logger.warning(f"[NOTIFY] Admin emails unavailable, notification skipped for entry {entry.id}: {e}")
            return 0
        if not recipients:
            logger.info("[NOTIFY] No admin emails found for notification")
            return 0

        sent = 0
        try:
            logger.info(f"[NOTIFY] Connecting to SMTP server {self.smtp_host}:{self.smtp_port}")
            with self._smtp_factory(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                for recipient in recipients:
                    try:
                        server.send_message(self._build_message(entry, recipient))
                        sent += 1
                    except smtplib.SMTPException as e:
                        logger.error(f"[NOTIFY] Failed to send to {recipient}: {e}")
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"[NOTIFY] SMTP authentication failed: {e}")
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[NOTIFY] SMTP error: {e}")
        except Exception as e:
            logger.exception(f"[NOTIFY] Unexpected error sending new run notification: {e}")

        logger.info(f"[NOTIFY] New run notification for entry {entry.id} sent to {sent}/{len(recipients)} admins")
        return sent

    def _build_message(self, entry: RunEntryView, recipient: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"New Run Submission - {entry.display_name}"
        msg["From"] = self.sender
        msg["To"] = recipient

        review_line = f"\nReview at: {self.review_url}\n" if self.review_url else ""
        text_body = f"""
New Run Submission

Name: {entry.display_name}
Service Number: #{entry.submitter_id}
Station: {entry.station}
Date: {entry.run_date.isoformat()}
Distance: {entry.distance_km} km
{review_line}
This is an automated notification from the run tracker.
"""

        review_link = (
            f'<p><a href="{escape(self.review_url)}" style="background: #2186eb; color: white; padding: 10px 20px; '
            f'text-decoration: none; border-radius: 6px;">Review Now</a></p>'
            if self.review_url
            else ""
        )
        html_body = f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
    <h2>New Run Submission</h2>
    <p>A new run has been submitted and is waiting for your review:</p>
    <table style="border-collapse: collapse;">
        <tr><td style="padding: 6px; color: #666;">Name</td><td style="padding: 6px;"><b>{escape(entry.display_name)}</b></td></tr>
        <tr><td style="padding: 6px; color: #666;">Service Number</td><td style="padding: 6px;"><b>#{escape(entry.submitter_id)}</b></td></tr>
        <tr><td style="padding: 6px; color: #666;">Station</td><td style="padding: 6px;">{escape(entry.station)}</td></tr>
        <tr><td style="padding: 6px; color: #666;">Date</td><td style="padding: 6px;">{entry.run_date.isoformat()}</td></tr>
        <tr><td style="padding: 6px; color: #666;">Distance</td><td style="padding: 6px;"><b>{entry.distance_km} km</b></td></tr>
    </table>
    {review_link}
    <p style="font-size: 12px; color: #999;">This is an automated notification from the run tracker.</p>
</body>
</html>
"""

        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg
