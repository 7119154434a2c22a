"""Best-effort delivery of password reset links over SMTP."""

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..config import Settings

logger = logging.getLogger(__name__)

RESET_EMAIL_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h2 style="color: #333; text-align: center;">Password Reset Request</h2>
  <p>Hello,</p>
  <p>You requested a password reset for your Todo List account.</p>
  <p>Click the button below to reset your password:</p>
  <div style="text-align: center; margin: 30px 0;">
    <a href="{reset_url}" style="display: inline-block; padding: 12px 24px; background-color: #007bff;
       color: white; text-decoration: none; border-radius: 5px; font-weight: bold;">Reset Password</a>
  </div>
  <p><strong>This link will expire in 1 hour.</strong></p>
  <p>If you didn't request this password reset, please ignore this email.</p>
</div>
"""


class ResetMailer:
    """Sends password reset links; never raises on delivery problems.

    When SMTP credentials are not configured, or delivery fails, the reset
    link is written to the log instead so an operator can hand it over.
    """

    def __init__(
        self,
        frontend_url: str,
        host: str = "smtp.gmail.com",
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.frontend_url = frontend_url.rstrip("/")
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResetMailer":
        return cls(
            frontend_url=settings.frontend_url,
            host=settings.email_host,
            port=settings.email_port,
            user=settings.email_user,
            password=settings.email_pass,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.user and self.password)

    def reset_url(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?token={token}"

    def build_message(self, to_address: str, reset_url: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = "Password Reset Request - Todo List App"
        message["From"] = f'"Todo List App" <{self.user}>'
        message["To"] = to_address
        message.set_content(
            f"You requested a password reset for your Todo List account.\n\n"
            f"Open this link to choose a new password (valid for 1 hour):\n{reset_url}\n"
        )
        message.add_alternative(RESET_EMAIL_HTML.format(reset_url=reset_url), subtype="html")
        return message

    def send_password_reset(self, to_address: str, token: str) -> bool:
        """Try to deliver the reset link.

        Returns:
            True if the message was handed to the SMTP server
        """
        reset_url = self.reset_url(token)
        if not self.enabled:
            logger.warning(f"Email credentials not configured. Password reset URL: {reset_url}")
            return False

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                smtp.login(self.user, self.password)
                smtp.send_message(self.build_message(to_address, reset_url))
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send password reset email via {self.host}:{self.port}: {e}")
            logger.warning(f"Email failed, fallback password reset URL: {reset_url}")
            return False

        logger.info("Password reset email sent")
        return True
