"""
Celery tasks for order processing.

Tasks:
    - complete_payment: one-shot completion of a simulated payment, scheduled
      with a countdown when the payment is initiated. Never retried.
"""
import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(ignore_result=False, max_retries=0)
def complete_payment(payment_id: int):
    """
    Complete a processing payment and move its order to order_confirmed.

    The payment or its order may have changed or disappeared since the task
    was scheduled; those cases end the task with a status dict instead of an
    error.

    Args:
        payment_id: primary key of the OrderPayment

    Returns:
        Dict describing the outcome
    """
    from orders.services import complete_scheduled_payment

    logger.info(f"[CELERY] Completing payment #{payment_id}")
    result = complete_scheduled_payment(payment_id)
    logger.info(f"[CELERY] Payment #{payment_id}: {result['status']}")
    return result
