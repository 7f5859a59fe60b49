import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from jobs.exceptions import NotAPoster
from jobs.models import Job
from jobs.services import get_user
from payments.exceptions import InvalidAmount, PaymentDeclined
from payments.fees import compute_fees, to_money
from payments.idempotency import funding_key, funding_window
from payments.models import Payment
from payments.providers.base import FAILED, SUCCEEDED
from payments.services import PaymentService

logger = logging.getLogger(__name__)


@dataclass
class FundingOutcome:
    payment: Payment
    job: Optional[Job] = None
    client_secret: Optional[str] = None

    @property
    def is_processing(self):
        return self.job is None


class EscrowFundingService:
    """
    Captures the poster's payment when a job is posted.

    A Job row only exists once its funding payment is completed. When the
    processor outcome is ambiguous the payment is kept in ``processing`` with
    the job draft in its metadata, and ``finalize_funding`` creates the job
    once the outcome is known.
    """
    def __init__(self, payment_service=None):
        self.payment_service = payment_service or PaymentService()

    def post_job(self, poster_id, base_amount, payment_type='fixed', *, title, description,
                 date_needed=None, category='', location='', payment_method=None, client_reference=None):
        poster = get_user(poster_id)
        if not poster.is_poster:
            raise NotAPoster()

        base = to_money(base_amount)
        minimum = Decimal(str(settings.MIN_JOB_PAYMENT_AMOUNT))
        if base < minimum:
            raise InvalidAmount(f'Job payment must be at least {minimum}.')
        if payment_type not in dict(Job.PAYMENT_TYPE_CHOICES):
            raise ValidationError({'payment_type': f'Unknown payment type "{payment_type}".'})
        fees = compute_fees(base)

        draft = {
            'title': title,
            'description': description,
            'category': category or '',
            'location': location or '',
            'payment_type': payment_type,
            'payment_amount': str(base),
            'date_needed': date_needed.isoformat() if hasattr(date_needed, 'isoformat') else date_needed,
        }
        request = {**draft, 'payment_method': payment_method}
        window = None if client_reference else funding_window()
        key = funding_key(poster.id, client_reference, request, window=window)

        existing = Payment.objects.filter(idempotency_key=key).select_related('job').first()
        while existing and self._is_finished(existing):
            # the earlier job already ran its course, so this is a new post
            key = funding_key(poster.id, client_reference, request, window=window, after=existing.id)
            existing = Payment.objects.filter(idempotency_key=key).select_related('job').first()
        if existing:
            logger.info(f"Funding request {key} seen before, returning payment {existing.id} ({existing.status})")
            return self._replay(existing)

        payer_ref = {'customer': poster.stripe_customer_id or None, 'payment_method': payment_method}
        res = self.payment_service.capture(
            amount=fees.total_amount,
            payer_ref=payer_ref,
            idempotency_key=key,
            poster_id=poster.id,
            description=f'Escrow for "{title}"',
        )
        outcome = res.get('status')

        record = {
            'user': poster,
            'amount': fees.total_amount,
            'service_fee': fees.service_fee,
            'type': 'payment',
            'provider': self.payment_service.provider_name,
            'transaction_id': res.get('transaction_id') or None,
            'idempotency_key': key,
            'description': f'Escrow for "{title}"',
            'metadata': {'job_draft': draft, 'payer_ref': payer_ref},
        }

        job = None
        try:
            with transaction.atomic():
                if outcome == SUCCEEDED:
                    payment = Payment.objects.create(status='completed', completed_at=timezone.now(), **record)
                    job = self._create_job(payment, draft)
                elif outcome == FAILED:
                    record['metadata']['failure'] = res.get('message', '')
                    payment = Payment.objects.create(status='failed', **record)
                else:
                    payment = Payment.objects.create(status='processing', **record)
        except IntegrityError:
            # a concurrent request with the same key recorded it first
            existing = Payment.objects.select_related('job').get(idempotency_key=key)
            return self._replay(existing)

        if outcome == SUCCEEDED:
            logger.info(f"Job {job.id} funded: payment {payment.id}, total {payment.amount}")
            return FundingOutcome(payment=payment, job=job)
        if outcome == FAILED:
            logger.warning(f"Funding declined for poster {poster.id}: {res.get('message')}")
            raise PaymentDeclined(res.get('message') or None)

        logger.warning(f"Funding outcome unknown for payment {payment.id}, waiting on reconciliation")
        return FundingOutcome(payment=payment, client_secret=res.get('client_secret'))

    def _is_finished(self, payment):
        if payment.status == 'refunded':
            return True
        return payment.job_id is not None and payment.job.status in ('canceled', 'completed')

    def _replay(self, payment):
        if payment.status == 'failed':
            raise PaymentDeclined(payment.metadata.get('failure') or None)
        if payment.status in ('completed', 'refunded'):
            job = payment.job or self.finalize_funding(payment)
            return FundingOutcome(payment=payment, job=job)
        return FundingOutcome(payment=payment)

    def _create_job(self, payment, draft):
        date_needed = draft.get('date_needed')
        job = Job.objects.create(
            poster=payment.user,
            title=draft['title'],
            description=draft['description'],
            category=draft.get('category', ''),
            location=draft.get('location', ''),
            payment_type=draft.get('payment_type', 'fixed'),
            payment_amount=Decimal(draft['payment_amount']),
            service_fee=payment.service_fee,
            total_amount=payment.amount,
            date_needed=parse_date(date_needed) if date_needed else None,
            status='open',
        )
        payment.job = job
        payment.save(update_fields=['job', 'updated_at'])
        return job

    def finalize_funding(self, payment, transaction_id=None):
        """
        Complete a funding payment and create its job. Safe to call more
        than once; returns the job, or None if the payment already failed.
        """
        with transaction.atomic():
            payment = Payment.objects.select_for_update().select_related('job').get(pk=payment.pk)
            if payment.status == 'failed':
                logger.warning(f"Ignoring late success for failed funding payment {payment.id}")
                return None
            payment.advance('completed', transaction_id=transaction_id)
            if payment.job_id:
                return payment.job
            job = self._create_job(payment, payment.metadata['job_draft'])

        logger.info(f"Deferred funding {payment.id} completed, job {job.id} created")
        return job

    def fail_funding(self, payment, message=''):
        with transaction.atomic():
            payment = Payment.objects.select_for_update().get(pk=payment.pk)
            if not payment.advance('failed', save=False):
                return False
            payment.metadata = {**payment.metadata, 'failure': message}
            payment.save(update_fields=['status', 'metadata', 'updated_at'])
        logger.warning(f"Funding payment {payment.id} failed: {message}")
        return True

    def resume_funding(self, payment):
        """Re-issue an ambiguous capture with its original key."""
        res = self.payment_service.capture(
            amount=payment.amount,
            payer_ref=payment.metadata.get('payer_ref', {}),
            idempotency_key=payment.idempotency_key,
            poster_id=payment.user_id,
            description=payment.description,
        )
        if res['status'] == SUCCEEDED:
            return self.finalize_funding(payment, res.get('transaction_id'))
        if res['status'] == FAILED:
            self.fail_funding(payment, res.get('message', ''))
        return None
