import logging
import smtplib
from email.message import EmailMessage

from ..core.config import settings

logger = logging.getLogger(__name__)


def mail_configured() -> bool:
    return bool(settings.MAIL_SERVER and settings.MAIL_FROM)


def build_password_reset_email(email: str, reset_token: str) -> EmailMessage:
    reset_url = f"{settings.PASSWORD_RESET_URL}?token={reset_token}"

    message = EmailMessage()
    message["From"] = settings.MAIL_FROM
    message["To"] = email
    message["Subject"] = f"{settings.APP_NAME} - Password reset"
    message.set_content(
        "We received a request to reset the password of your account.\n\n"
        f"Open this link within {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes "
        f"to choose a new password:\n{reset_url}\n\n"
        "If you did not ask for this, you can ignore this email.\n"
    )
    return message


def send_password_reset_email(email: str, reset_token: str) -> None:
    """Email the reset link to the account owner.

    Runs as a background task once the response is sent, so failures are
    logged and never reach the client.
    """
    if not mail_configured():
        logger.warning("Mail server not configured, password reset email not sent")
        return

    message = build_password_reset_email(email, reset_token)
    try:
        with smtplib.SMTP(
            settings.MAIL_SERVER, settings.MAIL_PORT, timeout=settings.MAIL_TIMEOUT_SECONDS
        ) as server:
            if settings.MAIL_STARTTLS:
                server.starttls()
            if settings.MAIL_USERNAME:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.send_message(message)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send password reset email")
        return

    logger.info("Password reset email sent")
