from abc import ABC, abstractmethod

# Outcome of a processor call. UNKNOWN covers timeouts, connection errors and
# 5xx responses: the call may or may not have taken effect.
SUCCEEDED = 'succeeded'
FAILED = 'failed'
UNKNOWN = 'unknown'


def result(status, transaction_id=None, message='', **extra):
    return {'status': status, 'transaction_id': transaction_id, 'message': message, **extra}


class BasePaymentProvider(ABC):
    """
    Abstract base class for all payment providers.
    Defines the common interface that all payment providers must implement.

    Every money-moving call returns a dict with ``status`` (one of
    SUCCEEDED, FAILED, UNKNOWN), ``transaction_id`` and ``message``.
    Providers log and return; they do not raise for processor-side problems.
    """
    name = ''

    def __init__(self, **kwargs):
        """Initialize the payment provider with configuration."""
        self.config = kwargs

    @abstractmethod
    def capture(self, amount, payer_ref, idempotency_key, **metadata):
        """
        Charge the poster and hold the funds on the platform.

        Args:
            amount: Amount to charge (as Decimal)
            payer_ref: Dict with the poster's ``customer`` and ``payment_method``
            idempotency_key: Key that makes a retried capture a no-op

        Returns:
            Dict with status and transaction_id (the charge reference)
        """
        pass

    @abstractmethod
    def transfer(self, amount, payee_ref, idempotency_key, **metadata):
        """
        Move funds from the platform to a worker's connect account.

        Args:
            amount: Net amount to transfer (as Decimal)
            payee_ref: The worker's connect account id
            idempotency_key: Key that makes a retried transfer a no-op

        Returns:
            Dict with status and transaction_id (the transfer reference)
        """
        pass

    @abstractmethod
    def refund(self, transaction_id, idempotency_key, amount=None, reason=''):
        """
        Refund a captured charge.

        Args:
            transaction_id: Reference returned by capture
            amount: Amount to refund (if None, full refund)

        Returns:
            Dict with status and transaction_id (the refund reference)
        """
        pass

    @abstractmethod
    def get_connect_account_status(self, payee_ref):
        """
        Returns one of 'active', 'pending', 'restricted', 'incomplete',
        or None when the processor could not be reached.
        """
        pass

    @abstractmethod
    def create_connect_account(self, email, idempotency_key, **metadata):
        """
        Open a payout (Connect) account for a worker.

        Returns:
            Dict with status and transaction_id (the new account id)
        """
        pass

    @abstractmethod
    def create_onboarding_link(self, payee_ref, refresh_url, return_url):
        """
        Hosted onboarding page for a Connect account.

        Returns:
            Dict with status, ``url`` and ``expires_at``
        """
        pass

    def parse_notification(self, payload, signature):
        """
        Validate and normalize an asynchronous status notification.

        Returns:
            ProcessorNotification, or None for events that carry no status change
        """
        raise NotImplementedError
