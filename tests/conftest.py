from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from fixer_api.celery import app as celery_app
from payments.providers.base import BasePaymentProvider, FAILED, SUCCEEDED, UNKNOWN, result
from payments.services import PaymentService


class FakeProcessor(BasePaymentProvider):
    """
    In-memory processor. Every call succeeds unless an outcome was queued
    for it; transaction ids are derived from the idempotency key, so a
    repeated call returns the same id like the real processor does.
    """
    name = 'fake'

    def __init__(self):
        super().__init__()
        self.queued = {'capture': [], 'transfer': [], 'refund': [], 'create_connect_account': [], 'create_onboarding_link': []}
        self.calls = []
        self.connect_statuses = {}

    def queue(self, operation, *statuses):
        self.queued[operation].extend(statuses)

    def calls_for(self, operation):
        return [call for call in self.calls if call[0] == operation]

    def _respond(self, operation, prefix, idempotency_key):
        status = self.queued[operation].pop(0) if self.queued[operation] else SUCCEEDED
        if status == SUCCEEDED:
            return result(SUCCEEDED, f'{prefix}_{idempotency_key}')
        if status == FAILED:
            return result(FAILED, message=f'{operation} declined')
        return result(UNKNOWN, message='timed out')

    def capture(self, amount, payer_ref, idempotency_key, **metadata):
        self.calls.append(('capture', amount, payer_ref, idempotency_key))
        return self._respond('capture', 'pi', idempotency_key)

    def transfer(self, amount, payee_ref, idempotency_key, **metadata):
        self.calls.append(('transfer', amount, payee_ref, idempotency_key))
        return self._respond('transfer', 'tr', idempotency_key)

    def refund(self, transaction_id, idempotency_key, amount=None, reason=''):
        self.calls.append(('refund', amount, transaction_id, idempotency_key))
        return self._respond('refund', 're', idempotency_key)

    def get_connect_account_status(self, payee_ref):
        return self.connect_statuses.get(payee_ref, 'active')

    def create_connect_account(self, email, idempotency_key, **metadata):
        self.calls.append(('create_connect_account', None, email, idempotency_key))
        return self._respond('create_connect_account', 'acct', idempotency_key)

    def create_onboarding_link(self, payee_ref, refresh_url, return_url):
        self.calls.append(('create_onboarding_link', None, payee_ref, return_url))
        res = self._respond('create_onboarding_link', 'link', payee_ref)
        if res['status'] == SUCCEEDED:
            res.update(url=f'https://connect.example.com/setup/{payee_ref}', expires_at=1700000000)
        return res


@pytest.fixture(autouse=True)
def eager_celery(settings):
    """Run .delay() inline; the celery app reads these through the CELERY_ settings namespace."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    return celery_app


@pytest.fixture
def fake_processor():
    return FakeProcessor()


@pytest.fixture
def payment_service(fake_processor):
    return PaymentService(provider=fake_processor)


@pytest.fixture
def use_fake_processor(monkeypatch, fake_processor):
    """Route services built without an explicit gateway (views, tasks) to the fake."""
    monkeypatch.setattr('payments.services.get_payment_provider', lambda name, **kwargs: fake_processor)
    return fake_processor


@pytest.fixture
def poster(django_user_model):
    return django_user_model.objects.create_user(
        email='poster@example.com', password='pass1234!', first_name='Pat', last_name='Poster',
        account_type='poster', stripe_customer_id='cus_poster',
    )


@pytest.fixture
def worker(django_user_model):
    return django_user_model.objects.create_user(
        email='worker@example.com', password='pass1234!', first_name='Wes', last_name='Worker',
        account_type='worker', stripe_connect_account_id='acct_worker', connect_account_status='active',
    )


@pytest.fixture
def other_worker(django_user_model):
    return django_user_model.objects.create_user(
        email='other@example.com', password='pass1234!', first_name='Olive', last_name='Other',
        account_type='worker', stripe_connect_account_id='acct_other', connect_account_status='active',
    )


@pytest.fixture
def funding_service(payment_service):
    from escrow.services import EscrowFundingService
    return EscrowFundingService(payment_service)


@pytest.fixture
def coordinator():
    from jobs.services import AssignmentCoordinator
    return AssignmentCoordinator()


@pytest.fixture
def settlement(payment_service):
    from earnings.services import SettlementOrchestrator
    return SettlementOrchestrator(payment_service)


@pytest.fixture
def cancellation(payment_service):
    from escrow.cancellation import CancellationService
    return CancellationService(payment_service)


@pytest.fixture
def reconciliation(payment_service):
    from payments.reconciliation import ReconciliationService
    return ReconciliationService(payment_service)


@pytest.fixture
def post_job(funding_service, poster):
    def _post(amount='100.00', **kwargs):
        kwargs.setdefault('title', 'Fix a leaking tap')
        kwargs.setdefault('description', 'Kitchen tap drips constantly.')
        kwargs.setdefault('payment_method', 'pm_card_visa')
        return funding_service.post_job(poster.id, Decimal(amount), 'fixed', **kwargs)
    return _post


@pytest.fixture
def open_job(post_job):
    return post_job().job


@pytest.fixture
def assigned_job(open_job, worker, poster, coordinator):
    application = coordinator.apply_to_job(open_job.id, worker.id, message='I can do it today.')
    return coordinator.accept(open_job.id, application.id, poster.id)


@pytest.fixture
def api_client():
    return APIClient()
