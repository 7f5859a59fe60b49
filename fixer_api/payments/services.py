import logging

from django.conf import settings

from .providers import get_payment_provider
from .providers.base import UNKNOWN, result

logger = logging.getLogger(__name__)


class PaymentService:
    """
    Provider adapter. This class does NOT create or update Payment records;
    it only calls the configured payment provider and guarantees every call
    comes back as a result dict with a succeeded/failed/unknown status.
    """
    def __init__(self, provider=None, provider_name=None):
        self._provider = provider
        self.provider_name = provider_name or getattr(provider, 'name', None) or settings.PAYMENT_PROVIDER

    @property
    def provider(self):
        if self._provider is None:
            self._provider = get_payment_provider(self.provider_name)
        return self._provider

    def _call(self, operation, *args, **kwargs):
        try:
            return getattr(self.provider, operation)(*args, **kwargs)
        except Exception as e:
            # the request may already have reached the processor
            logger.exception(f"Unexpected error during {self.provider_name} {operation}: {str(e)}")
            return result(UNKNOWN, message=str(e))

    def capture(self, *, amount, payer_ref, idempotency_key, **metadata):
        return self._call('capture', amount, payer_ref, idempotency_key, **metadata)

    def transfer(self, *, amount, payee_ref, idempotency_key, **metadata):
        return self._call('transfer', amount, payee_ref, idempotency_key, **metadata)

    def refund(self, *, transaction_id, idempotency_key, amount=None, reason='Job canceled'):
        return self._call('refund', transaction_id, idempotency_key, amount=amount, reason=reason)

    def create_connect_account(self, *, email, idempotency_key, **metadata):
        return self._call('create_connect_account', email, idempotency_key, **metadata)

    def create_onboarding_link(self, *, payee_ref, refresh_url, return_url):
        return self._call('create_onboarding_link', payee_ref, refresh_url, return_url)

    def get_connect_account_status(self, payee_ref):
        if not payee_ref:
            return None
        try:
            return self.provider.get_connect_account_status(payee_ref)
        except Exception as e:
            logger.exception(f"Connect status lookup failed for {payee_ref}: {str(e)}")
            return None

    def parse_notification(self, payload, signature):
        return self.provider.parse_notification(payload, signature)


def get_payment_service(provider=None):
    return PaymentService(provider=provider)
