# apps/payments/tasks.py

import structlog
from celery import shared_task

from apps.payments.services import reconcile_pending_payments

logger = structlog.get_logger(__name__)


@shared_task(bind=True, max_retries=3)
def reconcile_pending_payments_task(self, older_than_minutes=None):
    """Settle pending payments whose gateway callback never arrived."""
    try:
        summary = reconcile_pending_payments(older_than_minutes=older_than_minutes)
        return {key: len(value) for key, value in summary.items()}
    except Exception as exc:
        logger.error(f"Failed to reconcile pending payments: {exc}")
        raise self.retry(exc=exc, countdown=60 * (2**self.request.retries))
