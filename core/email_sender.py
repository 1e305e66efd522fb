"""
Verification email transports.

Two transports are provided:
- ConsoleEmailSender: logs the verification link (development)
- SmtpEmailSender: sends a multipart text/HTML message over SMTP

The flow treats sending as fire-and-forget: a failure is logged by the
caller and never aborts registration.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

SUBJECT = "Verify your email for SecureFace"


def build_verification_url(base_url: str, token: str) -> str:
    """Return the link a user follows to verify their email."""
    return f"{base_url.rstrip('/')}/verify/{token}"


def build_verification_message(sender: str, to_address: str, verification_url: str) -> EmailMessage:
    """Build the verification email with plain-text and HTML parts."""
    message = EmailMessage()
    message["From"] = sender
    message["To"] = to_address
    message["Subject"] = SUBJECT

    message.set_content(
        f"Please verify your email by opening this link: {verification_url}\n\n"
        "This link will expire in 24 hours.\n"
    )
    message.add_alternative(
        f"""\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>{SUBJECT}</h2>
  <p>Please click the link below to verify your email address:</p>
  <p><a href="{verification_url}">{verification_url}</a></p>
  <p>This link will expire in 24 hours.</p>
</div>
""",
        subtype="html",
    )
    return message


class EmailSender(ABC):
    """Sends verification links to users."""

    def __init__(self, base_url: str, sender: str):
        self.base_url = base_url
        self.sender = sender

    @abstractmethod
    def send_verification_email(self, to_address: str, token: str) -> None:
        """Send the verification link for `token` to `to_address`."""
        pass


class ConsoleEmailSender(EmailSender):
    """Writes the verification link to the log instead of sending mail."""

    def send_verification_email(self, to_address: str, token: str) -> None:
        url = build_verification_url(self.base_url, token)
        logger.info("=" * 60)
        logger.info(f"VERIFICATION EMAIL to {to_address}")
        logger.info(f"Verification link: {url}")
        logger.info("=" * 60)


class SmtpEmailSender(EmailSender):
    """
    Sends verification emails through an SMTP server.

    Args:
        base_url: Public base URL of the service.
        sender: From header value.
        host, port: SMTP server address.
        username, password: Optional credentials.
        use_tls: Upgrade the connection with STARTTLS.
        timeout: Socket timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        sender: str,
        host: str = "localhost",
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        super().__init__(base_url, sender)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send_verification_email(self, to_address: str, token: str) -> None:
        url = build_verification_url(self.base_url, token)
        message = build_verification_message(self.sender, to_address, url)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

        logger.info(f"Sent verification email to {to_address} via {self.host}:{self.port}")


def create_email_sender(email_config: Dict[str, Any], base_url: str) -> EmailSender:
    """
    Build the transport named by `email_config["transport"]`.

    Raises:
        ValueError: If the transport name is unknown.
    """
    transport = email_config.get("transport", "console")
    sender = email_config.get("sender", "SecureFace <no-reply@secureface.local>")

    if transport == "console":
        return ConsoleEmailSender(base_url, sender)

    if transport == "smtp":
        smtp_config = email_config.get("smtp", {}) or {}
        return SmtpEmailSender(
            base_url,
            sender,
            host=smtp_config.get("host", "localhost"),
            port=int(smtp_config.get("port", 587)),
            username=smtp_config.get("username"),
            password=smtp_config.get("password"),
            use_tls=bool(smtp_config.get("use_tls", True)),
        )

    raise ValueError(f"Unknown email transport: {transport}")
