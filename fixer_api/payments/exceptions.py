from rest_framework import status
from rest_framework.exceptions import APIException


class InvalidAmount(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid amount.'
    default_code = 'invalid_amount'


class PaymentDeclined(APIException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = 'The payment was declined by the processor.'
    default_code = 'payment_declined'


class RefundFailed(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'The processor rejected the refund.'
    default_code = 'refund_failed'


class SettlementInvariantError(APIException):
    """Raised instead of transferring more than the worker is owed."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Settlement would exceed the escrowed amount.'
    default_code = 'settlement_invariant'


class InvalidNotification(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid processor notification.'
    default_code = 'invalid_notification'


class ConnectOnboardingFailed(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Could not start payout account onboarding with the processor.'
    default_code = 'connect_onboarding_failed'


class ConnectAccountActive(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Your payout account is already set up.'
    default_code = 'connect_account_active'
