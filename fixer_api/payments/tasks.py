import logging
from datetime import timedelta

from celery import shared_task

from .notifications import ProcessorNotification
from .reconciliation import ReconciliationService

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=5, default_retry_delay=60)
def task_apply_processor_notification(self, notification_data):
    notification = ProcessorNotification.from_dict(notification_data)
    try:
        return ReconciliationService().apply(notification)
    except Exception as e:
        logger.error(f"Applying event {notification.event_id} failed, retrying: {str(e)}")
        raise self.retry(exc=e)


@shared_task
def task_sweep_ambiguous_payments(older_than_minutes=None):
    older_than = timedelta(minutes=older_than_minutes) if older_than_minutes is not None else None
    return ReconciliationService().sweep_ambiguous(older_than=older_than)


@shared_task
def task_retry_pending_settlements(worker_id=None):
    from earnings.services import SettlementOrchestrator

    results = SettlementOrchestrator().retry_pending_settlements(worker_id=worker_id)
    settled = sum(1 for res in results if res.is_settled)
    logger.info(f"Pending settlement retry: {settled} of {len(results)} settled")
    return {'retried': len(results), 'settled': settled}
