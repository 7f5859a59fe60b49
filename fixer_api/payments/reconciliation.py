import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import APIException

from .models import Payment, WebhookEvent
from .notifications import ACCOUNT, FUNDING, PAYMENT_TYPE_FOR_KIND, REFUND, TRANSFER
from .providers.base import FAILED, SUCCEEDED, UNKNOWN
from .services import PaymentService

logger = logging.getLogger(__name__)

TARGET_STATUS = {
    SUCCEEDED: 'completed',
    FAILED: 'failed',
    UNKNOWN: 'processing',
}


class ReconciliationService:
    """
    Applies processor notifications to the ledger and resolves payments
    whose outcome was ambiguous when the synchronous call returned.

    Every transition goes through the same code the originating flow uses,
    so a notification and a synchronous result can arrive in either order.
    """
    def __init__(self, payment_service=None):
        from earnings.services import SettlementOrchestrator
        from escrow.cancellation import CancellationService
        from escrow.services import EscrowFundingService

        self.payment_service = payment_service or PaymentService()
        self.funding = EscrowFundingService(self.payment_service)
        self.cancellation = CancellationService(self.payment_service)
        self.settlement = SettlementOrchestrator(self.payment_service)

    def apply(self, notification):
        """Apply one notification. Returns what happened, as recorded on the WebhookEvent."""
        try:
            with transaction.atomic():
                event = WebhookEvent.objects.create(
                    provider=self.payment_service.provider_name,
                    event_id=notification.event_id,
                    event_type=notification.event_type or notification.kind,
                )
        except IntegrityError:
            logger.info(f"Event {notification.event_id} already processed, skipping")
            return 'duplicate'

        try:
            outcome = self._dispatch(notification)
        except Exception:
            # forget the event so a redelivery gets another chance
            event.delete()
            raise

        event.result = outcome
        event.save(update_fields=['result'])
        return outcome

    def _locate(self, notification):
        payments = Payment.objects.filter(type=PAYMENT_TYPE_FOR_KIND[notification.kind])
        payment = None
        if notification.transaction_id:
            payment = payments.filter(transaction_id=notification.transaction_id).first()
        if payment is None and notification.idempotency_key:
            payment = payments.filter(idempotency_key=notification.idempotency_key).first()
        return payment

    def _dispatch(self, notification):
        if notification.kind == ACCOUNT:
            return self._apply_account(notification)

        payment = self._locate(notification)
        if payment is None:
            logger.warning(
                f"No {notification.kind} payment for event {notification.event_id} "
                f"(transaction {notification.transaction_id}, key {notification.idempotency_key}), ignoring"
            )
            return 'unknown_reference'

        target = TARGET_STATUS[notification.status]
        if payment.status == target:
            if notification.kind == FUNDING and target == 'completed' and payment.job_id is None:
                self.funding.finalize_funding(payment, notification.transaction_id)
                return 'applied'
            return 'noop'
        if not payment.can_transition_to(target):
            logger.warning(
                f"Dropping out-of-order event {notification.event_id}: payment {payment.id} "
                f"is {payment.status}, notification says {target}"
            )
            return 'dropped'

        if target == 'processing':
            payment.advance('processing', transaction_id=notification.transaction_id)
            return 'processing'

        message = notification.metadata.get('failure_message') or notification.event_type
        if notification.kind == FUNDING:
            if notification.status == SUCCEEDED:
                self.funding.finalize_funding(payment, notification.transaction_id)
            else:
                self.funding.fail_funding(payment, message)
        elif notification.kind == TRANSFER:
            self._apply_transfer(payment, notification, message)
        elif notification.kind == REFUND:
            if notification.status == SUCCEEDED:
                self.cancellation.finalize_cancellation(payment.job_id, notification.transaction_id)
            else:
                self.cancellation.abort_cancellation(payment.job_id, message, notification.transaction_id)

        logger.info(f"Event {notification.event_id} moved payment {payment.id} to {target}")
        return 'applied'

    def _apply_transfer(self, payment, notification, message):
        from earnings.models import Earning

        earning = Earning.objects.active().filter(job_id=payment.job_id, worker_id=payment.worker_id).first()
        if earning is None:
            logger.error(f"Transfer payment {payment.id} has no earning, updating the payment only")
            payment.advance(TARGET_STATUS[notification.status], transaction_id=notification.transaction_id)
            return
        if notification.status == SUCCEEDED:
            self.settlement.record_transfer(earning, notification.transaction_id)
        else:
            self.settlement.fail_transfer(earning, message, notification.transaction_id)

    def _apply_account(self, notification):
        from accounts.services import apply_connect_account_update

        user, previous = apply_connect_account_update(notification.account_id, notification.account_status)
        if user is None:
            return 'unknown_reference'
        if notification.account_status == 'active' and previous != 'active':
            results = self.settlement.retry_pending_settlements(worker_id=user.id)
            logger.info(f"Connect account of user {user.id} became active, retried {len(results)} settlements")
        return 'applied'

    def sweep_ambiguous(self, older_than=None):
        """
        Re-issue the original call, with the original idempotency key, for
        every payment stuck in flight for longer than ``older_than``.
        """
        if older_than is None:
            older_than = timedelta(minutes=settings.RECONCILIATION_GRACE_MINUTES)
        cutoff = timezone.now() - older_than
        stuck = list(Payment.objects.in_flight().filter(updated_at__lt=cutoff).select_related('job'))

        resolved = 0
        for payment in stuck:
            try:
                if payment.type == 'payment':
                    self.funding.resume_funding(payment)
                elif payment.type == 'transfer' and payment.job_id:
                    self.settlement.settle(payment.job)
                elif payment.type == 'refund' and payment.job_id:
                    self.cancellation.resume_cancellation(payment)
                else:
                    logger.warning(f"Don't know how to resume {payment.type} payment {payment.id}")
                    continue
            except APIException as e:
                logger.error(f"Could not resume payment {payment.id}: {e.detail}")
                continue

            if not Payment.objects.in_flight().filter(pk=payment.pk).exists():
                resolved += 1

        logger.info(f"Reconciliation sweep: {len(stuck)} in-flight payments checked, {resolved} resolved")
        return {'checked': len(stuck), 'resolved': resolved}
