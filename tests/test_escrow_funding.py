from decimal import Decimal

import pytest

from jobs.exceptions import NotAPoster
from jobs.models import Job
from payments.exceptions import InvalidAmount, PaymentDeclined
from payments.models import Payment
from payments.providers.base import FAILED, UNKNOWN

pytestmark = pytest.mark.django_db


def test_successful_capture_creates_funded_job(post_job, fake_processor, poster):
    outcome = post_job('100.00')

    job, payment = outcome.job, outcome.payment
    assert job.status == 'open'
    assert job.poster == poster
    assert job.payment_amount == Decimal('100.00')
    assert job.service_fee == Decimal('5.00')
    assert job.total_amount == Decimal('105.00')
    assert payment.type == 'payment'
    assert payment.status == 'completed'
    assert payment.amount == job.total_amount
    assert payment.job == job
    assert payment.transaction_id.startswith('pi_')

    [capture] = fake_processor.calls_for('capture')
    assert capture[1] == Decimal('105.00')
    assert capture[2] == {'customer': 'cus_poster', 'payment_method': 'pm_card_visa'}


def test_amount_below_minimum_is_rejected_before_charging(post_job, fake_processor):
    with pytest.raises(InvalidAmount):
        post_job('9.99')
    assert fake_processor.calls == []
    assert Payment.objects.count() == 0


def test_workers_cannot_post_jobs(funding_service, worker, fake_processor):
    with pytest.raises(NotAPoster):
        funding_service.post_job(worker.id, Decimal('50.00'), title='x', description='y')
    assert fake_processor.calls == []


def test_declined_capture_records_failure_and_no_job(post_job, fake_processor):
    fake_processor.queue('capture', FAILED)

    with pytest.raises(PaymentDeclined):
        post_job()

    assert Job.objects.count() == 0
    payment = Payment.objects.get()
    assert payment.status == 'failed'
    assert payment.metadata['failure'] == 'capture declined'


def test_retrying_a_declined_request_does_not_charge_again(post_job, fake_processor):
    fake_processor.queue('capture', FAILED)
    with pytest.raises(PaymentDeclined):
        post_job(client_reference='req-1')
    with pytest.raises(PaymentDeclined):
        post_job(client_reference='req-1')
    assert len(fake_processor.calls_for('capture')) == 1


def test_new_payment_method_is_a_new_funding_attempt(post_job, fake_processor):
    fake_processor.queue('capture', FAILED)
    with pytest.raises(PaymentDeclined):
        post_job(payment_method='pm_card_declined')

    outcome = post_job(payment_method='pm_card_visa')
    assert outcome.job is not None
    assert len(fake_processor.calls_for('capture')) == 2


def test_ambiguous_capture_defers_job_creation(post_job, fake_processor):
    fake_processor.queue('capture', UNKNOWN)

    outcome = post_job(title='Paint the fence')

    assert outcome.is_processing
    assert outcome.job is None
    assert Job.objects.count() == 0
    assert outcome.payment.status == 'processing'
    assert outcome.payment.metadata['job_draft']['title'] == 'Paint the fence'


def test_repeated_request_returns_the_same_job(post_job, fake_processor):
    first = post_job(client_reference='req-42')
    second = post_job(client_reference='req-42')

    assert first.job.id == second.job.id
    assert Job.objects.count() == 1
    assert Payment.objects.count() == 1
    assert len(fake_processor.calls_for('capture')) == 1


def test_finalize_funding_creates_the_job_once(post_job, fake_processor, funding_service):
    fake_processor.queue('capture', UNKNOWN)
    payment = post_job().payment

    job = funding_service.finalize_funding(payment, 'pi_late')
    again = funding_service.finalize_funding(payment, 'pi_late')

    payment.refresh_from_db()
    assert job.id == again.id
    assert Job.objects.count() == 1
    assert payment.status == 'completed'
    assert payment.transaction_id == 'pi_late'
    assert job.total_amount == payment.amount == Decimal('105.00')


def test_failed_funding_is_never_resurrected(post_job, fake_processor, funding_service):
    fake_processor.queue('capture', UNKNOWN)
    payment = post_job().payment

    assert funding_service.fail_funding(payment, 'card expired')
    assert funding_service.finalize_funding(payment, 'pi_late') is None
    assert Job.objects.count() == 0


def test_posting_a_canceled_job_again_charges_again(post_job, poster, fake_processor, cancellation):
    first = post_job(title='Weekly lawn mowing')
    cancellation.cancel_job(first.job.id, poster.id)

    second = post_job(title='Weekly lawn mowing')

    assert second.job.id != first.job.id
    assert second.job.status == 'open'
    assert len(fake_processor.calls_for('capture')) == 2
    first.job.refresh_from_db()
    assert first.job.status == 'canceled'


def test_finished_job_is_never_replayed_for_a_client_reference(post_job, poster, fake_processor, cancellation):
    first = post_job(client_reference='req-9')
    cancellation.cancel_job(first.job.id, poster.id)

    second = post_job(client_reference='req-9')
    third = post_job(client_reference='req-9')

    assert second.job.id != first.job.id
    assert third.job.id == second.job.id
    assert len(fake_processor.calls_for('capture')) == 2


def test_identical_post_dedupes_only_within_the_retry_window(post_job, fake_processor, monkeypatch):
    monkeypatch.setattr('escrow.services.funding_window', lambda: 100)
    first = post_job(title='Clean gutters')
    retried = post_job(title='Clean gutters')

    monkeypatch.setattr('escrow.services.funding_window', lambda: 101)
    later = post_job(title='Clean gutters')

    assert retried.job.id == first.job.id
    assert later.job.id != first.job.id
    assert Job.objects.count() == 2
    assert len(fake_processor.calls_for('capture')) == 2


def test_funding_window(settings):
    from datetime import datetime, timezone as dt_timezone

    from payments.idempotency import funding_window

    settings.FUNDING_RETRY_WINDOW_MINUTES = 60
    start = datetime(2026, 3, 1, 10, 0, tzinfo=dt_timezone.utc)
    assert funding_window(start) == funding_window(start.replace(minute=59))
    assert funding_window(start.replace(hour=11)) == funding_window(start) + 1
