"""Recovery email delivery."""
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from authledger.config import Settings
from authledger.logging import get_logger

logger = get_logger(__name__)


class EmailSender(Protocol):
    def send_recovery(self, to_address: str, token: str) -> None: ...


def build_recovery_html(reset_url: str, app_name: str) -> str:
    """Generate HTML content for the password recovery email."""
    return f"""
    <html>
    <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #1e40af;">Reset your {app_name} password</h1>
        <p>Someone asked to reset the password for this account.</p>
        <p><a href="{reset_url}">Choose a new password</a></p>
        <p style="margin-top: 24px; padding-top: 16px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 12px;">
            If this wasn't you, ignore this email. The link can be used once.
        </p>
    </body>
    </html>
    """


class SmtpEmailSender:
    """Sends recovery emails over SMTP with STARTTLS.

    Delivery is best effort: failures are logged and never raised.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send_recovery(self, to_address: str, token: str) -> None:
        if not self.settings.smtp_host:
            logger.warning("smtp_not_configured", email=to_address)
            return

        reset_url = self.settings.recovery_url_template.format(token=token)
        html_content = build_recovery_html(reset_url, self.settings.app_name)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"{self.settings.app_name}: password recovery"
        msg["From"] = self.settings.smtp_from_email
        msg["To"] = to_address

        plain_text = html_content.replace("<br>", "\n").replace("</p>", "\n\n")
        plain_text = re.sub(r"<[^>]+>", "", plain_text)
        plain_text = plain_text.replace("Choose a new password", f"Choose a new password: {reset_url}")

        msg.attach(MIMEText(plain_text, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as server:
                server.starttls()
                if self.settings.smtp_user and self.settings.smtp_password:
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("recovery_email_failed", email=to_address, error=str(exc))
            return

        logger.info("recovery_email_sent", email=to_address)
