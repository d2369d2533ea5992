# reviewiq/modules/reviews/services/notification_service.py

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from reviewiq.core.config import settings
from reviewiq.core.exceptions import SideEffectError
from reviewiq.modules.reviews.services.fact_store import BRANCHES, FactStore

logger = logging.getLogger(__name__)


class EmailBackend:
    """Email notification backend using SMTP"""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
    ):
        self.smtp_host = smtp_host or settings.smtp_server
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_username = smtp_username or settings.smtp_username
        self.smtp_password = smtp_password or settings.smtp_password
        self.from_email = from_email or settings.alert_from_email
        self.from_name = from_name or settings.alert_from_name

    @property
    def configured(self) -> bool:
        return bool(self.smtp_host)

    async def send_email(
        self, to_email: str, subject: str, html_content: str,
        text_content: Optional[str] = None
    ) -> None:
        """Send one email; the blocking SMTP exchange runs in a worker thread"""
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email

        if text_content:
            message.attach(MIMEText(text_content, "plain"))
        message.attach(MIMEText(html_content, "html"))

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            raise SideEffectError(f"Failed to send email to {to_email}: {e}") from e

    def _deliver(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            server.starttls()
            if self.smtp_username and self.smtp_password:
                server.login(self.smtp_username, self.smtp_password)
            server.send_message(message)


class ManagerAlertService:
    """Alerts a branch manager when one of their reviews is escalated"""

    def __init__(self, store: FactStore, email_backend: Optional[EmailBackend] = None):
        self.store = store
        self.email_backend = email_backend or EmailBackend()

    async def send_escalation_alert(self, branch_id: str, review: Dict[str, Any]) -> bool:
        """
        Email the branch manager about an escalated review.

        Returns False when the alert was skipped because SMTP is not set up
        or the branch has no manager address on file. Delivery failures are
        raised as SideEffectError.
        """
        if not self.email_backend.configured:
            logger.info(f"[NOTIFICATION] SMTP not configured, skipping alert for {branch_id}")
            return False

        branch = self.store.get(BRANCHES, branch_id)
        manager_email = (branch or {}).get("manager_email")
        if not manager_email:
            logger.warning(f"[NOTIFICATION] No manager email for branch {branch_id}")
            return False

        branch_name = branch.get("name") or branch_id
        subject = f"Escalated review at {branch_name} ({review.get('rating')}/5)"
        text_content = (
            f"A review at {branch_name} was escalated.\n\n"
            f"Rating: {review.get('rating')}/5\n"
            f"Sentiment: {review.get('sentiment')}\n"
            f"Category: {review.get('category')}\n"
            f"Review ID: {review.get('reviewId')}\n"
        )
        html_content = (
            f"<h2>Escalated review at {branch_name}</h2>"
            f"<p><strong>Rating:</strong> {review.get('rating')}/5<br>"
            f"<strong>Sentiment:</strong> {review.get('sentiment')}<br>"
            f"<strong>Category:</strong> {review.get('category')}<br>"
            f"<strong>Review ID:</strong> {review.get('reviewId')}</p>"
        )

        await self.email_backend.send_email(manager_email, subject, html_content, text_content)
        logger.info(f"[NOTIFICATION] Escalation alert sent to {manager_email} for {review.get('reviewId')}")
        return True
