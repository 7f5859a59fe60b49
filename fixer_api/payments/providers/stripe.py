import json
import logging

import stripe
from django.conf import settings

from payments.exceptions import InvalidNotification
from payments.fees import to_minor_units
from payments.notifications import ACCOUNT, FUNDING, REFUND, TRANSFER, ProcessorNotification
from .base import BasePaymentProvider, FAILED, SUCCEEDED, UNKNOWN, result

logger = logging.getLogger(__name__)

PAYMENT_INTENT_STATUSES = {
    'succeeded': SUCCEEDED,
    'processing': UNKNOWN,
    'requires_action': UNKNOWN,  # poster still has to authenticate on the client
    'requires_capture': UNKNOWN,
    'requires_confirmation': UNKNOWN,
    'requires_payment_method': FAILED,
    'canceled': FAILED,
}

REFUND_STATUSES = {
    'succeeded': SUCCEEDED,
    'pending': UNKNOWN,
    'requires_action': UNKNOWN,
    'failed': FAILED,
    'canceled': FAILED,
}


def connect_status_from_account(details_submitted, payouts_enabled, pending_verification):
    if details_submitted and payouts_enabled:
        return 'active'
    if details_submitted and pending_verification:
        return 'pending'
    if details_submitted:
        return 'restricted'
    return 'incomplete'


def classify_stripe_error(error):
    """
    Card declines and rejected requests are definite failures. Network
    problems, rate limits, idempotency clashes and 5xx responses are not:
    the request may have been applied.
    """
    if isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError, stripe.IdempotencyError)):
        return UNKNOWN
    if isinstance(error, (stripe.CardError, stripe.InvalidRequestError,
                          stripe.AuthenticationError, stripe.PermissionError)):
        return FAILED
    http_status = getattr(error, 'http_status', None)
    if http_status is None or http_status >= 500:
        return UNKNOWN
    return FAILED


class StripeProvider(BasePaymentProvider):
    """
    Stripe payment provider.
    Escrow funding is a confirmed PaymentIntent on the platform account,
    payouts are Connect transfers, cancellations are Refunds.
    """
    name = 'stripe'

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        stripe.api_key = settings.STRIPE_SECRET_KEY
        stripe.max_network_retries = 2
        stripe.default_http_client = stripe.RequestsClient(timeout=settings.PAYMENT_PROCESSOR_TIMEOUT)
        self.currency = getattr(settings, 'STRIPE_CURRENCY', 'usd')
        self.webhook_secret = getattr(settings, 'STRIPE_WEBHOOK_SECRET', '')
        self.allow_unsigned = settings.DEBUG and getattr(settings, 'STRIPE_WEBHOOK_ALLOW_UNSIGNED', False)

    def capture(self, amount, payer_ref, idempotency_key, **metadata):
        params = {
            'amount': to_minor_units(amount),
            'currency': self.currency,
            'confirm': True,
            'automatic_payment_methods': {'enabled': True, 'allow_redirects': 'never'},
            'metadata': {**{k: str(v) for k, v in metadata.items()}, 'idempotency_key': idempotency_key},
            'description': metadata.get('description') or 'Job escrow funding',
        }
        if payer_ref.get('customer'):
            params['customer'] = payer_ref['customer']
        if payer_ref.get('payment_method'):
            params['payment_method'] = payer_ref['payment_method']

        try:
            intent = stripe.PaymentIntent.create(idempotency_key=idempotency_key, **params)
        except stripe.StripeError as e:
            outcome = classify_stripe_error(e)
            logger.error(f"Stripe capture error ({outcome}) for key {idempotency_key}: {str(e)}")
            return result(outcome, message=str(e))

        outcome = PAYMENT_INTENT_STATUSES.get(intent.status, UNKNOWN)
        logger.info(f"Stripe PaymentIntent {intent.id} is {intent.status} for key {idempotency_key}, amount: {amount}")
        return result(outcome, intent.id, message=intent.status, client_secret=getattr(intent, 'client_secret', None))

    def transfer(self, amount, payee_ref, idempotency_key, **metadata):
        params = {
            'amount': to_minor_units(amount),
            'currency': self.currency,
            'destination': payee_ref,
            'metadata': {**{k: str(v) for k, v in metadata.items()}, 'idempotency_key': idempotency_key},
        }
        if metadata.get('job_id'):
            params['transfer_group'] = f"job-{metadata['job_id']}"

        try:
            transfer = stripe.Transfer.create(idempotency_key=idempotency_key, **params)
        except stripe.StripeError as e:
            outcome = classify_stripe_error(e)
            logger.error(f"Stripe transfer error ({outcome}) for key {idempotency_key}: {str(e)}")
            return result(outcome, message=str(e))

        if getattr(transfer, 'reversed', False):
            logger.warning(f"Stripe transfer {transfer.id} came back reversed")
            return result(FAILED, transfer.id, message='reversed')

        logger.info(f"Stripe transfer {transfer.id} created: {amount} to {payee_ref}")
        return result(SUCCEEDED, transfer.id)

    def refund(self, transaction_id, idempotency_key, amount=None, reason=''):
        params = {
            'payment_intent': transaction_id,
            'metadata': {'reason': reason, 'idempotency_key': idempotency_key},
        }
        if amount is not None:
            params['amount'] = to_minor_units(amount)

        try:
            refund = stripe.Refund.create(idempotency_key=idempotency_key, **params)
        except stripe.StripeError as e:
            outcome = classify_stripe_error(e)
            logger.error(f"Stripe refund error ({outcome}) for intent {transaction_id}: {str(e)}")
            return result(outcome, message=str(e))

        outcome = REFUND_STATUSES.get(refund.status, UNKNOWN)
        logger.info(f"Stripe refund {refund.id} is {refund.status} for intent {transaction_id}")
        return result(outcome, refund.id, message=refund.status)

    def get_connect_account_status(self, payee_ref):
        try:
            account = stripe.Account.retrieve(payee_ref)
        except stripe.StripeError as e:
            logger.error(f"Could not retrieve Stripe account {payee_ref}: {str(e)}")
            return None

        requirements = getattr(account, 'requirements', None)
        pending_verification = getattr(requirements, 'pending_verification', None) if requirements else None
        return connect_status_from_account(
            bool(getattr(account, 'details_submitted', False)),
            bool(getattr(account, 'payouts_enabled', False)),
            pending_verification,
        )

    def create_connect_account(self, email, idempotency_key, **metadata):
        try:
            account = stripe.Account.create(
                idempotency_key=idempotency_key,
                type='express',
                email=email,
                business_type='individual',
                capabilities={
                    'card_payments': {'requested': True},
                    'transfers': {'requested': True},
                },
                metadata={k: str(v) for k, v in metadata.items()},
            )
        except stripe.StripeError as e:
            outcome = classify_stripe_error(e)
            logger.error(f"Stripe account creation error ({outcome}) for key {idempotency_key}: {str(e)}")
            return result(outcome, message=str(e))

        logger.info(f"Stripe Connect account {account.id} created for {email}")
        return result(SUCCEEDED, account.id)

    def create_onboarding_link(self, payee_ref, refresh_url, return_url):
        try:
            link = stripe.AccountLink.create(
                account=payee_ref,
                refresh_url=refresh_url,
                return_url=return_url,
                type='account_onboarding',
            )
        except stripe.StripeError as e:
            outcome = classify_stripe_error(e)
            logger.error(f"Stripe onboarding link error ({outcome}) for {payee_ref}: {str(e)}")
            return result(outcome, message=str(e))

        return result(SUCCEEDED, url=link.url, expires_at=getattr(link, 'expires_at', None))

    def parse_notification(self, payload, signature):
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')

        if not self.webhook_secret and not self.allow_unsigned:
            logger.error("Rejected Stripe webhook: STRIPE_WEBHOOK_SECRET is not configured")
            raise InvalidNotification('Webhook signing secret is not configured.')

        if self.webhook_secret:
            try:
                stripe.WebhookSignature.verify_header(
                    payload, signature or '', self.webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE,
                )
            except stripe.SignatureVerificationError as e:
                logger.warning(f"Rejected Stripe webhook with bad signature: {str(e)}")
                raise InvalidNotification('Invalid webhook signature.')

        try:
            event = json.loads(payload)
        except ValueError:
            raise InvalidNotification('Webhook payload is not valid JSON.')

        return self.notification_from_event(event)

    def notification_from_event(self, event):
        from payments.serializers import StripeWebhookSerializer

        serializer = StripeWebhookSerializer(data=event)
        if not serializer.is_valid():
            raise InvalidNotification(serializer.errors)
        data = serializer.validated_data
        event_type = data['type']
        obj = data['object']
        metadata = obj.get('metadata') or {}
        common = {
            'event_id': data['id'],
            'event_type': event_type,
            'idempotency_key': metadata.get('idempotency_key'),
            'metadata': metadata,
        }

        if event_type.startswith('payment_intent.'):
            status = {
                'payment_intent.succeeded': SUCCEEDED,
                'payment_intent.payment_failed': FAILED,
                'payment_intent.canceled': FAILED,
            }.get(event_type, UNKNOWN)
            return ProcessorNotification(kind=FUNDING, status=status, transaction_id=obj['id'], **common)

        if event_type in ('transfer.created', 'transfer.updated'):
            status = FAILED if obj.get('reversed') else SUCCEEDED
            return ProcessorNotification(kind=TRANSFER, status=status, transaction_id=obj['id'], **common)

        if event_type in ('transfer.failed', 'transfer.reversed'):
            return ProcessorNotification(kind=TRANSFER, status=FAILED, transaction_id=obj['id'], **common)

        if event_type in ('refund.created', 'refund.updated', 'refund.failed', 'charge.refund.updated'):
            status = REFUND_STATUSES.get(obj.get('status'), UNKNOWN)
            return ProcessorNotification(kind=REFUND, status=status, transaction_id=obj['id'], **common)

        if event_type == 'account.updated':
            requirements = obj.get('requirements') or {}
            account_status = connect_status_from_account(
                bool(obj.get('details_submitted')),
                bool(obj.get('payouts_enabled')),
                requirements.get('pending_verification'),
            )
            return ProcessorNotification(
                kind=ACCOUNT, status=SUCCEEDED, account_id=obj['id'], account_status=account_status, **common,
            )

        logger.info(f"Unhandled Stripe event type: {event_type}")
        return None
