import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
import stripe

from payments.exceptions import InvalidNotification
from payments.notifications import ACCOUNT, FUNDING, REFUND, TRANSFER
from payments.providers import get_payment_provider
from payments.providers.base import FAILED, SUCCEEDED, UNKNOWN
from payments.providers.stripe import StripeProvider, classify_stripe_error, connect_status_from_account

PAYER = {'customer': 'cus_1', 'payment_method': 'pm_card_visa'}
WEBHOOK_SECRET = 'whsec_test'


@pytest.fixture
def provider(settings):
    settings.STRIPE_SECRET_KEY = 'sk_test_123'
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    return StripeProvider()


def sign(payload, secret=WEBHOOK_SECRET):
    timestamp = int(time.time())
    digest = hmac.new(secret.encode('utf-8'), f'{timestamp}.{payload}'.encode('utf-8'), hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'


def event(event_type, obj, event_id='evt_1'):
    return json.dumps({'id': event_id, 'type': event_type, 'data': {'object': obj}})


def test_provider_registry(provider):
    assert isinstance(get_payment_provider('stripe'), StripeProvider)
    with pytest.raises(ValueError):
        get_payment_provider('paypal')


def test_capture_sends_minor_units_and_key(provider):
    intent = SimpleNamespace(id='pi_1', status='succeeded', client_secret='pi_1_secret')
    with mock.patch('stripe.PaymentIntent.create', return_value=intent) as create:
        res = provider.capture(Decimal('105.00'), PAYER, 'funding-1-abc', poster_id=1)

    assert res['status'] == SUCCEEDED
    assert res['transaction_id'] == 'pi_1'
    assert res['client_secret'] == 'pi_1_secret'
    kwargs = create.call_args.kwargs
    assert kwargs['amount'] == 10500
    assert kwargs['idempotency_key'] == 'funding-1-abc'
    assert kwargs['customer'] == 'cus_1'
    assert kwargs['payment_method'] == 'pm_card_visa'
    assert kwargs['metadata']['idempotency_key'] == 'funding-1-abc'


def test_capture_needing_authentication_is_unknown(provider):
    intent = SimpleNamespace(id='pi_2', status='requires_action', client_secret='pi_2_secret')
    with mock.patch('stripe.PaymentIntent.create', return_value=intent):
        res = provider.capture(Decimal('20.00'), PAYER, 'funding-1-def')
    assert res['status'] == UNKNOWN
    assert res['transaction_id'] == 'pi_2'


@pytest.mark.parametrize('error, expected', [
    (stripe.CardError('Your card was declined.', 'card', 'card_declined', http_status=402), FAILED),
    (stripe.InvalidRequestError('No such customer', 'customer', http_status=400), FAILED),
    (stripe.APIConnectionError('Network error'), UNKNOWN),
    (stripe.RateLimitError('Too many requests', http_status=429), UNKNOWN),
    (stripe.APIError('Server error', http_status=503), UNKNOWN),
])
def test_error_classification(provider, error, expected):
    assert classify_stripe_error(error) == expected
    with mock.patch('stripe.PaymentIntent.create', side_effect=error):
        res = provider.capture(Decimal('20.00'), PAYER, 'funding-1-ghi')
    assert res['status'] == expected
    assert res['transaction_id'] is None


def test_transfer_to_connect_account(provider):
    transfer = SimpleNamespace(id='tr_1', reversed=False)
    with mock.patch('stripe.Transfer.create', return_value=transfer) as create:
        res = provider.transfer(Decimal('95.00'), 'acct_1', 'transfer-3-7', job_id=3, worker_id=7)

    assert res['status'] == SUCCEEDED
    assert res['transaction_id'] == 'tr_1'
    kwargs = create.call_args.kwargs
    assert kwargs['amount'] == 9500
    assert kwargs['destination'] == 'acct_1'
    assert kwargs['transfer_group'] == 'job-3'


def test_reversed_transfer_is_a_failure(provider):
    with mock.patch('stripe.Transfer.create', return_value=SimpleNamespace(id='tr_2', reversed=True)):
        res = provider.transfer(Decimal('95.00'), 'acct_1', 'transfer-3-7')
    assert res['status'] == FAILED


@pytest.mark.parametrize('refund_status, expected', [
    ('succeeded', SUCCEEDED),
    ('pending', UNKNOWN),
    ('failed', FAILED),
])
def test_refund_status_mapping(provider, refund_status, expected):
    refund = SimpleNamespace(id='re_1', status=refund_status)
    with mock.patch('stripe.Refund.create', return_value=refund) as create:
        res = provider.refund('pi_1', 'refund-3', amount=Decimal('105.00'))
    assert res['status'] == expected
    assert create.call_args.kwargs['payment_intent'] == 'pi_1'
    assert create.call_args.kwargs['amount'] == 10500


@pytest.mark.parametrize('details, payouts, pending, expected', [
    (True, True, None, 'active'),
    (True, False, ['individual.id_number'], 'pending'),
    (True, False, [], 'restricted'),
    (False, False, None, 'incomplete'),
])
def test_connect_status_mapping(details, payouts, pending, expected):
    assert connect_status_from_account(details, payouts, pending) == expected


def test_connect_status_unreachable_is_none(provider):
    with mock.patch('stripe.Account.retrieve', side_effect=stripe.APIConnectionError('Network error')):
        assert provider.get_connect_account_status('acct_1') is None


def test_parse_payment_intent_event(provider):
    payload = event('payment_intent.succeeded', {
        'id': 'pi_1', 'status': 'succeeded', 'metadata': {'idempotency_key': 'funding-1-abc'},
    })
    notification = provider.parse_notification(payload.encode('utf-8'), sign(payload))

    assert notification.kind == FUNDING
    assert notification.status == SUCCEEDED
    assert notification.transaction_id == 'pi_1'
    assert notification.idempotency_key == 'funding-1-abc'
    assert notification.event_id == 'evt_1'


def test_parse_payment_failure_event(provider):
    payload = event('payment_intent.payment_failed', {'id': 'pi_1'})
    assert provider.parse_notification(payload, sign(payload)).status == FAILED


def test_parse_transfer_and_refund_events(provider):
    payload = event('transfer.reversed', {'id': 'tr_1'})
    reversed_transfer = provider.parse_notification(payload, sign(payload))
    assert (reversed_transfer.kind, reversed_transfer.status) == (TRANSFER, FAILED)

    payload = event('refund.updated', {'id': 're_1', 'status': 'succeeded'})
    refund = provider.parse_notification(payload, sign(payload))
    assert (refund.kind, refund.status) == (REFUND, SUCCEEDED)


def test_parse_account_event(provider):
    payload = event('account.updated', {'id': 'acct_1', 'details_submitted': True, 'payouts_enabled': True})
    notification = provider.parse_notification(payload, sign(payload))
    assert notification.kind == ACCOUNT
    assert notification.account_id == 'acct_1'
    assert notification.account_status == 'active'


def test_unhandled_event_is_ignored(provider):
    payload = event('customer.created', {'id': 'cus_1'})
    assert provider.parse_notification(payload, sign(payload)) is None


@pytest.mark.parametrize('payload', [
    'not json',
    json.dumps({'id': 'evt_1', 'type': 'payment_intent.succeeded', 'data': {}}),
])
def test_malformed_payload_is_rejected(provider, payload):
    with pytest.raises(InvalidNotification):
        provider.parse_notification(payload, sign(payload))


def test_bad_or_missing_signature_is_rejected(provider):
    payload = event('payment_intent.succeeded', {'id': 'pi_1'})

    with pytest.raises(InvalidNotification):
        provider.parse_notification(payload, 't=1,v1=bad')
    with pytest.raises(InvalidNotification):
        provider.parse_notification(payload, None)
    with pytest.raises(InvalidNotification):
        provider.parse_notification(payload, sign(payload, secret='whsec_other'))


def test_webhooks_rejected_without_a_signing_secret(settings):
    settings.STRIPE_WEBHOOK_SECRET = ''
    settings.DEBUG = False
    settings.STRIPE_WEBHOOK_ALLOW_UNSIGNED = True
    provider = StripeProvider()

    with pytest.raises(InvalidNotification):
        provider.parse_notification(event('payment_intent.succeeded', {'id': 'pi_1'}), None)


def test_unsigned_webhooks_only_with_debug_opt_in(settings):
    settings.STRIPE_WEBHOOK_SECRET = ''
    settings.DEBUG = True
    settings.STRIPE_WEBHOOK_ALLOW_UNSIGNED = False
    with pytest.raises(InvalidNotification):
        StripeProvider().parse_notification(event('payment_intent.succeeded', {'id': 'pi_1'}), None)

    settings.STRIPE_WEBHOOK_ALLOW_UNSIGNED = True
    notification = StripeProvider().parse_notification(event('payment_intent.succeeded', {'id': 'pi_1'}), None)
    assert notification.transaction_id == 'pi_1'


def test_create_connect_account(provider):
    with mock.patch('stripe.Account.create', return_value=SimpleNamespace(id='acct_new')) as create:
        res = provider.create_connect_account('wes@example.com', 'connect-7', user_id=7)

    assert res['status'] == SUCCEEDED
    assert res['transaction_id'] == 'acct_new'
    kwargs = create.call_args.kwargs
    assert kwargs['type'] == 'express'
    assert kwargs['email'] == 'wes@example.com'
    assert kwargs['idempotency_key'] == 'connect-7'
    assert kwargs['capabilities']['transfers'] == {'requested': True}
    assert kwargs['metadata'] == {'user_id': '7'}


def test_create_connect_account_network_error_is_unknown(provider):
    with mock.patch('stripe.Account.create', side_effect=stripe.APIConnectionError('Network error')):
        res = provider.create_connect_account('wes@example.com', 'connect-7')
    assert res['status'] == UNKNOWN
    assert res['transaction_id'] is None


def test_create_onboarding_link(provider):
    link = SimpleNamespace(url='https://connect.stripe.com/setup/e/acct_1/abc', expires_at=1700000000)
    with mock.patch('stripe.AccountLink.create', return_value=link) as create:
        res = provider.create_onboarding_link('acct_1', 'https://app/refresh', 'https://app/done')

    assert res['status'] == SUCCEEDED
    assert res['url'] == link.url
    assert res['expires_at'] == 1700000000
    assert create.call_args.kwargs == {
        'account': 'acct_1',
        'refresh_url': 'https://app/refresh',
        'return_url': 'https://app/done',
        'type': 'account_onboarding',
    }
