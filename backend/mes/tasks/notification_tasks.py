"""FORGE MES — Celery tasks for outbound notifications."""
import logging
import smtplib

from mes.config import get_settings
from mes.core.mailer import build_message, send_smtp
from mes.worker import celery_app

logger = logging.getLogger(__name__)


def completion_email(reference: str) -> tuple[str, str]:
    """(subject, body) for a completed manufacturing order."""
    return (
        f"MO {reference} Completed",
        f"Manufacturing order {reference} has been marked done.",
    )


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_mo_completed_email(self, to_email: str, reference: str) -> dict:
    """Send the completion notice. With mail disabled the message is only logged."""
    settings = get_settings()
    subject, body = completion_email(reference)

    if not settings.MAIL_ENABLED:
        logger.info("[EMAIL SIMULATION] To: %s | Subject: %s", to_email, subject)
        return {"to": to_email, "subject": subject, "sent": False}

    msg = build_message(
        from_email=settings.MAIL_FROM,
        to_emails=[to_email],
        subject=subject,
        body_text=body,
    )
    try:
        send_smtp(
            host=settings.MAIL_HOST,
            port=settings.MAIL_PORT,
            use_tls=settings.MAIL_USE_TLS,
            username=settings.MAIL_USER,
            password=settings.MAIL_PASSWORD,
            msg=msg,
        )
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Completion email for %s to %s failed: %s", reference, to_email, exc)
        raise self.retry(exc=exc)

    logger.info("Completion email for %s sent to %s", reference, to_email)
    return {"to": to_email, "subject": subject, "sent": True}
