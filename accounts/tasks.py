"""
Celery tasks for account notifications.
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


def mask_phone(phone: str) -> str:
    return f"{'*' * max(len(phone) - 4, 0)}{phone[-4:]}"


@shared_task
def send_otp(phone: str, code: str, message_id: str):
    """
    Deliver a one-time password.

    SMS gateway integration is outside this service; the dispatch is logged
    so the flow can be exercised end to end.
    """
    logger.info(f"[CELERY] Dispatching OTP {message_id} to {mask_phone(phone)}")
    logger.debug(f"[CELERY] OTP {message_id} code: {code}")
    return {'status': 'sent', 'message_id': message_id, 'channel': 'sms'}
