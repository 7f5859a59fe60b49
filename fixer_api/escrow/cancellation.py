import logging
from dataclasses import dataclass
from typing import Optional

from django.db import transaction
from django.utils import timezone

from jobs.exceptions import JobLocked, JobNotCancelable, NotJobPoster
from jobs.locking import get_job, lock_job, retry_on_conflict, save_job
from jobs.models import Job
from jobs.utils import notify_on_commit, send_job_canceled_email
from payments.exceptions import RefundFailed
from payments.idempotency import refund_key
from payments.models import Payment
from payments.providers.base import FAILED, SUCCEEDED
from payments.services import PaymentService

logger = logging.getLogger(__name__)


@dataclass
class CancellationOutcome:
    job: Job
    payment: Optional[Payment] = None

    @property
    def is_processing(self):
        return self.job.status != 'canceled'


class CancellationService:
    """
    Refunds a job's escrow and cancels it.

    Runs in two short locked phases around the processor call: the first
    marks the job refund-pending (accept and complete are refused while it
    is set), the second records the outcome.
    """
    def __init__(self, payment_service=None):
        self.payment_service = payment_service or PaymentService()

    def cancel_job(self, job_id, poster_id, reason=''):
        job = get_job(job_id)
        if job.poster_id != poster_id:
            raise NotJobPoster()
        if job.status in ('completed', 'canceled'):
            raise JobNotCancelable()

        if job.refund_pending:
            in_flight = Payment.objects.refunds().in_flight().filter(idempotency_key=refund_key(job.id)).first()
            if in_flight:
                return CancellationOutcome(job=job, payment=in_flight)
            raise JobLocked()

        job, refund = self._begin(job_id, poster_id, reason)

        funding = Payment.objects.for_job(job).funding().completed().first()
        if funding is None:
            self.abort_cancellation(job.id, 'No completed funding payment to refund.')
            raise RefundFailed('No completed funding payment to refund.')

        res = self.payment_service.refund(
            transaction_id=funding.transaction_id,
            idempotency_key=refund.idempotency_key,
            amount=job.total_amount,
            reason=reason or 'Job canceled',
        )

        if res['status'] == SUCCEEDED:
            job, refund = self.finalize_cancellation(job.id, res.get('transaction_id'))
            return CancellationOutcome(job=job, payment=refund)

        if res['status'] == FAILED:
            self.abort_cancellation(job.id, res.get('message', ''), res.get('transaction_id'))
            raise RefundFailed(res.get('message') or None)

        refund.advance('processing', transaction_id=res.get('transaction_id'))
        logger.warning(f"Refund outcome unknown for job {job.id}, payment {refund.id} waiting on reconciliation")
        return CancellationOutcome(job=job, payment=refund)

    @retry_on_conflict
    def _begin(self, job_id, poster_id, reason=''):
        """
        Mark the job refund-pending and record the refund as pending, in one
        transaction. If the refund call never happens the pending row is
        what the reconciliation sweep resumes.
        """
        job = get_job(job_id)
        if job.poster_id != poster_id:
            raise NotJobPoster()
        if job.status in ('completed', 'canceled'):
            raise JobNotCancelable()
        if job.refund_pending:
            raise JobLocked()

        with transaction.atomic():
            job = lock_job(job_id, expected_version=job.version)
            job.refund_pending = True
            save_job(job, 'refund_pending')
            refund = Payment.objects.create(
                user=job.poster,
                job=job,
                amount=job.total_amount,
                type='refund',
                status='pending',
                provider=self.payment_service.provider_name,
                idempotency_key=refund_key(job.id),
                description=f'Refund for "{job.title}"',
                metadata={'reason': reason},
            )

        logger.info(f"Cancellation of job {job.id} started, refund payment {refund.id} pending")
        return job, refund

    def finalize_cancellation(self, job_id, refund_transaction_id=None):
        """Record a confirmed refund and cancel the job. Idempotent."""
        key = refund_key(job_id)
        with transaction.atomic():
            job = lock_job(job_id)
            refund = Payment.objects.select_for_update().filter(idempotency_key=key).first()
            if job.status == 'canceled':
                return job, refund

            now = timezone.now()
            if refund:
                refund.advance('completed', transaction_id=refund_transaction_id)
            else:
                refund = Payment.objects.create(
                    user=job.poster,
                    job=job,
                    amount=job.total_amount,
                    type='refund',
                    status='completed',
                    provider=self.payment_service.provider_name,
                    transaction_id=refund_transaction_id or None,
                    idempotency_key=key,
                    description=f'Refund for "{job.title}"',
                    completed_at=now,
                )

            funding = Payment.objects.select_for_update().for_job(job).funding().completed().first()
            if funding:
                funding.advance('refunded')

            displaced_worker = job.worker if job.status == 'assigned' else None

            job.status = 'canceled'
            job.canceled_at = now
            job.refund_pending = False
            save_job(job, 'status', 'canceled_at', 'refund_pending')

            job.applications.filter(status__in=['pending', 'accepted']).update(status='rejected', updated_at=now)

            if displaced_worker:
                notify_on_commit(send_job_canceled_email, displaced_worker, job)

        logger.info(f"Job {job.id} canceled, refund payment {refund.id} completed ({refund.amount})")
        return job, refund

    def abort_cancellation(self, job_id, message='', refund_transaction_id=None):
        """Record a failed refund and release the job; its status is unchanged."""
        key = refund_key(job_id)
        with transaction.atomic():
            job = lock_job(job_id)
            refund = Payment.objects.select_for_update().filter(idempotency_key=key).first()
            failure = {'failure': message, 'idempotency_key': key}
            if refund:
                if not refund.advance('failed', save=False):
                    return job
                # frees the key for the next cancellation attempt
                refund.idempotency_key = None
                refund.metadata = {**refund.metadata, **failure}
                refund.save(update_fields=['status', 'idempotency_key', 'metadata', 'updated_at'])
            else:
                Payment.objects.create(
                    user=job.poster,
                    job=job,
                    amount=job.total_amount,
                    type='refund',
                    status='failed',
                    provider=self.payment_service.provider_name,
                    transaction_id=refund_transaction_id or None,
                    description=f'Refund for "{job.title}"',
                    metadata=failure,
                )

            if job.refund_pending:
                job.refund_pending = False
                save_job(job, 'refund_pending')

        logger.warning(f"Refund for job {job.id} failed: {message}")
        return job

    def resume_cancellation(self, refund):
        """Re-issue an ambiguous refund with its original key."""
        funding = Payment.objects.for_job(refund.job_id).funding().completed().first()
        if funding is None:
            logger.error(f"Refund payment {refund.id} has no completed funding payment to refund")
            return None
        res = self.payment_service.refund(
            transaction_id=funding.transaction_id,
            idempotency_key=refund.idempotency_key,
            amount=refund.amount,
            reason=refund.metadata.get('reason') or 'Job canceled',
        )
        if res['status'] == SUCCEEDED:
            return self.finalize_cancellation(refund.job_id, res.get('transaction_id'))[0]
        if res['status'] == FAILED:
            return self.abort_cancellation(refund.job_id, res.get('message', ''))
        return None
