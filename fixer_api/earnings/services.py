import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from accounts.services import refresh_connect_status
from jobs.exceptions import JobLocked, JobNotAssigned, NotAssignedWorker
from jobs.locking import get_job, lock_job, retry_on_conflict, save_job
from jobs.models import Job
from jobs.utils import notify_on_commit, send_connect_account_needed_email
from payments.exceptions import SettlementInvariantError
from payments.fees import worker_fees
from payments.idempotency import transfer_key
from payments.models import Payment
from payments.providers.base import FAILED, SUCCEEDED
from payments.services import PaymentService
from .models import Earning

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    job: Job
    earning: Optional[Earning]
    state: str
    payment: Optional[Payment] = None

    @property
    def is_settled(self):
        return self.state == 'settled'


class SettlementOrchestrator:
    """
    Completes a job and pays the worker their net share of the escrow.

    assigned -> completion_requested -> payout_eligibility_checked
    -> transfer_requested -> settled, with a retryable settlement_failed.
    Every step can be re-entered; the transfer is keyed on (job, worker) so
    repeating it never pays twice.
    """
    def __init__(self, payment_service=None):
        self.payment_service = payment_service or PaymentService()

    def complete_job(self, job_id, worker_id):
        job = get_job(job_id)
        if job.status == 'completed' and job.worker_id == worker_id:
            return self.settle(job)
        job = self._complete(job_id, worker_id)
        return self.settle(job)

    @retry_on_conflict
    def _complete(self, job_id, worker_id):
        job = get_job(job_id)
        if job.status == 'completed' and job.worker_id == worker_id:
            return job
        if job.status != 'assigned':
            raise JobNotAssigned()
        if job.worker_id != worker_id:
            raise NotAssignedWorker()
        if job.refund_pending:
            raise JobLocked()

        with transaction.atomic():
            job = lock_job(job_id, expected_version=job.version)
            job.status = 'completed'
            job.completed_at = timezone.now()
            save_job(job, 'status', 'completed_at')

            if not Earning.objects.active().filter(job=job, worker_id=worker_id).exists():
                fees = worker_fees(job.payment_amount)
                earning = Earning.objects.create(
                    worker_id=worker_id,
                    job=job,
                    payment=Payment.objects.for_job(job).funding().completed().first(),
                    amount=job.payment_amount,
                    service_fee=fees.service_fee,
                    net_amount=fees.net_amount,
                    status='pending',
                    settlement_state='completion_requested',
                )
                logger.info(f"Job {job.id} completed, earning {earning.id} of {earning.net_amount} pending")

        return job

    def _transfer_payment(self, key):
        return Payment.objects.filter(idempotency_key=key).first()

    def settle(self, job):
        earning = Earning.objects.active().select_related('worker').filter(job=job, worker_id=job.worker_id).first()
        if earning is None:
            raise SettlementInvariantError(f'Job {job.id} has no earning to settle.')
        if earning.status == 'paid':
            return SettlementResult(job, earning, 'settled')

        key = transfer_key(job.id, earning.worker_id)
        transfer = self._transfer_payment(key)
        if transfer and transfer.status == 'completed':
            earning = self.record_transfer(earning, transfer.transaction_id)
            return SettlementResult(job, earning, 'settled', transfer)

        worker = earning.worker
        connect_status = refresh_connect_status(worker, self.payment_service)
        if connect_status != 'active':
            if earning.settlement_state != 'payout_eligibility_checked':
                notify_on_commit(send_connect_account_needed_email, worker, job)
            earning.settlement_state = 'payout_eligibility_checked'
            earning.save(update_fields=['settlement_state', 'updated_at'])
            logger.info(f"Earning {earning.id} held: worker {worker.id} connect status is {connect_status}")
            return SettlementResult(job, earning, 'payout_eligibility_checked')

        net = worker_fees(job.payment_amount).net_amount
        if net <= 0:
            raise SettlementInvariantError(f'Net payout for job {job.id} is not positive.')
        transferred = Payment.objects.for_job(job).transfers().completed().aggregate(total=Sum('amount'))['total']
        if (transferred or Decimal('0.00')) + net > job.payment_amount - earning.service_fee:
            raise SettlementInvariantError()

        earning.settlement_state = 'transfer_requested'
        earning.save(update_fields=['settlement_state', 'updated_at'])

        res = self.payment_service.transfer(
            amount=net,
            payee_ref=worker.stripe_connect_account_id,
            idempotency_key=key,
            job_id=job.id,
            worker_id=worker.id,
        )

        if res['status'] == SUCCEEDED:
            earning = self.record_transfer(earning, res.get('transaction_id'))
            return SettlementResult(job, earning, 'settled', self._transfer_payment(key))

        if res['status'] == FAILED:
            earning = self.fail_transfer(earning, res.get('message', ''), res.get('transaction_id'))
            return SettlementResult(job, earning, 'settlement_failed')

        if transfer is None:
            # a concurrent settle may have recorded the same transfer first
            transfer, _ = Payment.objects.get_or_create(
                idempotency_key=key,
                defaults={
                    'user': job.poster,
                    'worker': worker,
                    'job': job,
                    'amount': net,
                    'service_fee': earning.service_fee,
                    'type': 'transfer',
                    'status': 'processing',
                    'provider': self.payment_service.provider_name,
                    'transaction_id': res.get('transaction_id') or None,
                    'description': f'Payout for "{job.title}"',
                },
            )
        logger.warning(f"Transfer outcome unknown for earning {earning.id}, payment {transfer.id} waiting on reconciliation")
        return SettlementResult(job, earning, 'transfer_requested', transfer)

    def record_transfer(self, earning, transaction_id=None):
        """Record a confirmed transfer and mark the earning paid. Idempotent."""
        with transaction.atomic():
            earning = Earning.objects.select_for_update().select_related('job', 'worker').get(pk=earning.pk)
            job = earning.job
            key = transfer_key(job.id, earning.worker_id)
            transfer = Payment.objects.select_for_update().filter(idempotency_key=key).first()
            if transfer:
                transfer.advance('completed', transaction_id=transaction_id)
                transaction_id = transfer.transaction_id or transaction_id
            else:
                transfer = Payment.objects.create(
                    user=job.poster,
                    worker=earning.worker,
                    job=job,
                    amount=earning.net_amount,
                    service_fee=earning.service_fee,
                    type='transfer',
                    status='completed',
                    provider=self.payment_service.provider_name,
                    transaction_id=transaction_id or None,
                    idempotency_key=key,
                    description=f'Payout for "{job.title}"',
                    completed_at=timezone.now(),
                )
            if earning.mark_paid(transaction_id):
                logger.info(f"Earning {earning.id} paid: {earning.net_amount} to worker {earning.worker_id} ({transaction_id})")
        return earning

    def fail_transfer(self, earning, message='', transaction_id=None):
        """
        Record a definite transfer failure. The earning stays pending and the
        transfer key is left free so the next settle attempt can reuse it.
        """
        with transaction.atomic():
            earning = Earning.objects.select_for_update().get(pk=earning.pk)
            if earning.status != 'pending':
                return earning
            key = transfer_key(earning.job_id, earning.worker_id)
            transfer = Payment.objects.select_for_update().filter(idempotency_key=key).first()
            if transfer and transfer.advance('failed', save=False):
                transfer.idempotency_key = None
                transfer.metadata = {**transfer.metadata, 'failure': message, 'idempotency_key': key}
                transfer.save(update_fields=['status', 'idempotency_key', 'metadata', 'updated_at'])
            earning.record_settlement_failure(message, transaction_id)
        logger.warning(f"Transfer for earning {earning.id} failed: {message}")
        return earning

    def retry_pending_settlements(self, worker_id=None):
        earnings = Earning.objects.pending().filter(job__status='completed').select_related('job')
        if worker_id is not None:
            earnings = earnings.filter(worker_id=worker_id)

        results = []
        for earning in earnings:
            try:
                results.append(self.settle(earning.job))
            except SettlementInvariantError as e:
                logger.error(f"Settlement of earning {earning.id} refused: {e.detail}")
        return results
