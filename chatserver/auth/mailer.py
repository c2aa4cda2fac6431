"""
OTP mail delivery over SMTP.

Runs from FastAPI background tasks, so delivery failures are logged and never
reach the client that triggered them.
"""

import logging
import smtplib
from email.message import EmailMessage

from ..config import Settings

logger = logging.getLogger("chatserver.auth.mailer")


def build_otp_message(settings: Settings, email: str, otp: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = settings.SMTP_SENDER
    message["To"] = email
    message["Subject"] = "OTP for account verification"
    message.set_content(f"Your OTP is: {otp}")
    message.add_alternative(
        f"<h1>Hello from {settings.SERVICE_NAME}! Here is your OTP: {otp}</h1>",
        subtype="html",
    )
    return message


def send_otp_mail(settings: Settings, email: str, otp: str) -> bool:
    """
    Send a verification code to an email address.

    Args:
        settings: SMTP configuration
        email: Recipient
        otp: Code to deliver

    Returns:
        True if the message was handed to the SMTP server
    """
    if not settings.smtp_enabled:
        logger.warning(
            "SMTP_HOST not configured, skipping OTP mail",
            extra={"recipient": email},
        )
        return False

    message = build_otp_message(settings, email, otp)

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
            smtp.starttls()
            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Could not send email: {e}", extra={"recipient": email})
        return False

    logger.info("OTP mail sent", extra={"recipient": email})
    return True
