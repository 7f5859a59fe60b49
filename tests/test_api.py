import hashlib
import hmac
import json
import time

import pytest

from jobs.models import Job
from payments.models import Payment, WebhookEvent
from payments.providers.base import FAILED, UNKNOWN

pytestmark = pytest.mark.django_db

JOB_PAYLOAD = {
    'title': 'Assemble a wardrobe',
    'description': 'Flat-pack wardrobe, all parts present.',
    'payment_amount': '100.00',
    'payment_method': 'pm_card_visa',
}
WEBHOOK_SECRET = 'whsec_test'


def sign(body):
    timestamp = int(time.time())
    digest = hmac.new(WEBHOOK_SECRET.encode('utf-8'), f'{timestamp}.{body}'.encode('utf-8'), hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'


def test_poster_funds_and_posts_a_job(api_client, poster, use_fake_processor):
    api_client.force_authenticate(user=poster)

    response = api_client.post('/api/jobs/', JOB_PAYLOAD, format='json')

    assert response.status_code == 201
    assert response.data['job']['status'] == 'open'
    assert response.data['job']['total_amount'] == '105.00'
    assert response.data['payment']['status'] == 'completed'


def test_processing_payment_returns_202(api_client, poster, use_fake_processor):
    use_fake_processor.queue('capture', UNKNOWN)
    api_client.force_authenticate(user=poster)

    response = api_client.post('/api/jobs/', JOB_PAYLOAD, format='json')

    assert response.status_code == 202
    assert response.data['payment']['status'] == 'processing'
    assert Job.objects.count() == 0


def test_declined_payment_returns_402(api_client, poster, use_fake_processor):
    use_fake_processor.queue('capture', FAILED)
    api_client.force_authenticate(user=poster)

    response = api_client.post('/api/jobs/', JOB_PAYLOAD, format='json')

    assert response.status_code == 402
    assert Job.objects.count() == 0


def test_workers_cannot_post_jobs(api_client, worker, use_fake_processor):
    api_client.force_authenticate(user=worker)
    response = api_client.post('/api/jobs/', JOB_PAYLOAD, format='json')
    assert response.status_code == 403
    assert use_fake_processor.calls == []


def test_below_minimum_returns_400(api_client, poster, use_fake_processor):
    api_client.force_authenticate(user=poster)
    response = api_client.post('/api/jobs/', {**JOB_PAYLOAD, 'payment_amount': '5.00'}, format='json')
    assert response.status_code == 400


def test_full_job_lifecycle(api_client, poster, worker, use_fake_processor):
    api_client.force_authenticate(user=poster)
    job_id = api_client.post('/api/jobs/', JOB_PAYLOAD, format='json').data['job']['id']

    api_client.force_authenticate(user=worker)
    response = api_client.post(f'/api/jobs/{job_id}/applications/', {'message': 'Done this before.'}, format='json')
    assert response.status_code == 201
    application_id = response.data['application']['id']

    api_client.force_authenticate(user=poster)
    response = api_client.post(f'/api/jobs/{job_id}/applications/{application_id}/accept/')
    assert response.status_code == 200
    assert response.data['job']['status'] == 'assigned'
    assert response.data['job']['worker']['id'] == worker.id

    api_client.force_authenticate(user=worker)
    response = api_client.post(f'/api/jobs/{job_id}/complete/')
    assert response.status_code == 200
    assert response.data['settlement_state'] == 'settled'
    assert response.data['earning']['net_amount'] == '95.00'

    response = api_client.get('/api/earnings/summary/')
    assert response.status_code == 200
    assert response.data['total_paid'] == '95.00'
    assert response.data['jobs_completed'] == 1

    api_client.force_authenticate(user=poster)
    response = api_client.get(f'/api/jobs/{job_id}/escrow/')
    assert response.status_code == 200
    assert response.data['funded_amount'] == '105.00'
    assert response.data['paid_out_amount'] == '95.00'
    assert response.data['held_balance'] == '10.00'

    response = api_client.post(f'/api/jobs/{job_id}/cancel/', {}, format='json')
    assert response.status_code == 409


def test_accepting_for_someone_elses_job_is_forbidden(api_client, open_job, worker, django_user_model, use_fake_processor):
    api_client.force_authenticate(user=worker)
    response = api_client.post(f'/api/jobs/{open_job.id}/applications/', {}, format='json')
    application = response.data['application']['id']

    stranger = django_user_model.objects.create_user(
        email='stranger@example.com', password='pass1234!', account_type='poster',
    )
    api_client.force_authenticate(user=stranger)
    response = api_client.post(f'/api/jobs/{open_job.id}/applications/{application}/accept/')
    assert response.status_code == 403


def test_cancel_refunds_poster(api_client, open_job, poster, use_fake_processor):
    api_client.force_authenticate(user=poster)

    response = api_client.post(f'/api/jobs/{open_job.id}/cancel/', {'reason': 'Plans changed'}, format='json')

    assert response.status_code == 200
    assert response.data['job']['status'] == 'canceled'
    assert response.data['payment']['type'] == 'refund'


def test_stripe_webhook_completes_deferred_funding(api_client, post_job, fake_processor, settings):
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    fake_processor.queue('capture', UNKNOWN)
    payment = post_job(title='Mow the lawn').payment
    body = json.dumps({
        'id': 'evt_webhook_1',
        'type': 'payment_intent.succeeded',
        'data': {'object': {'id': 'pi_live_1', 'status': 'succeeded',
                            'metadata': {'idempotency_key': payment.idempotency_key}}},
    })

    response = api_client.post(
        '/api/payments/webhooks/stripe/', body, content_type='application/json', HTTP_STRIPE_SIGNATURE=sign(body),
    )

    assert response.status_code == 200
    payment.refresh_from_db()
    assert payment.status == 'completed'
    assert payment.transaction_id == 'pi_live_1'
    assert Job.objects.get().title == 'Mow the lawn'
    assert WebhookEvent.objects.get(event_id='evt_webhook_1').result == 'applied'


def test_stripe_webhook_ignores_unhandled_events(api_client, settings):
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    body = json.dumps({'id': 'evt_2', 'type': 'customer.created', 'data': {'object': {'id': 'cus_1'}}})
    response = api_client.post(
        '/api/payments/webhooks/stripe/', body, content_type='application/json', HTTP_STRIPE_SIGNATURE=sign(body),
    )
    assert response.status_code == 200
    assert WebhookEvent.objects.count() == 0


@pytest.mark.parametrize('secret, signature', [
    ('', None),
    (WEBHOOK_SECRET, None),
    (WEBHOOK_SECRET, 't=1,v1=forged'),
])
def test_stripe_webhook_rejects_unsigned_events(api_client, post_job, fake_processor, settings, secret, signature):
    settings.STRIPE_WEBHOOK_SECRET = secret
    fake_processor.queue('capture', UNKNOWN)
    payment = post_job(title='Mow the lawn').payment
    body = json.dumps({
        'id': 'evt_forged',
        'type': 'payment_intent.succeeded',
        'data': {'object': {'id': 'pi_forged', 'status': 'succeeded',
                            'metadata': {'idempotency_key': payment.idempotency_key}}},
    })
    headers = {'HTTP_STRIPE_SIGNATURE': signature} if signature else {}

    response = api_client.post('/api/payments/webhooks/stripe/', body, content_type='application/json', **headers)

    assert response.status_code == 400
    payment.refresh_from_db()
    assert payment.status == 'processing'
    assert Job.objects.count() == 0
    assert WebhookEvent.objects.count() == 0


def test_payment_list_is_scoped_to_user(api_client, open_job, poster, worker):
    api_client.force_authenticate(user=poster)
    response = api_client.get('/api/payments/')
    assert response.status_code == 200
    assert response.data['count'] == 1

    api_client.force_authenticate(user=worker)
    assert api_client.get('/api/payments/').data['count'] == 0


def test_connect_status_refresh(api_client, worker, use_fake_processor):
    use_fake_processor.connect_statuses['acct_worker'] = 'restricted'
    api_client.force_authenticate(user=worker)

    response = api_client.get('/api/account/connect-status/')

    assert response.status_code == 200
    assert response.data['connect_account_status'] == 'restricted'
    assert response.data['can_receive_payouts'] is False
    assert response.data['stale'] is False


@pytest.fixture
def new_worker(django_user_model):
    return django_user_model.objects.create_user(
        email='newbie@example.com', password='pass1234!', account_type='worker',
    )


def test_connect_onboarding_opens_an_account_once(api_client, new_worker, use_fake_processor, settings):
    settings.FRONTEND_DOMAIN = 'https://app.example.com'
    api_client.force_authenticate(user=new_worker)

    account_id = f'acct_connect-{new_worker.id}'
    use_fake_processor.connect_statuses[account_id] = 'incomplete'

    first = api_client.post('/api/account/connect/')
    second = api_client.post('/api/account/connect/')

    assert first.status_code == second.status_code == 201
    assert first.data['stripe_connect_account_id'] == second.data['stripe_connect_account_id'] == account_id
    assert first.data['url'] == f'https://connect.example.com/setup/{account_id}'
    assert len(use_fake_processor.calls_for('create_connect_account')) == 1
    links = use_fake_processor.calls_for('create_onboarding_link')
    assert [call[2] for call in links] == [account_id] * 2
    assert links[0][3] == 'https://app.example.com/settings/payments/success'

    new_worker.refresh_from_db()
    assert new_worker.stripe_connect_account_id == account_id


def test_connect_onboarding_refused_once_active(api_client, worker, use_fake_processor):
    api_client.force_authenticate(user=worker)
    response = api_client.post('/api/account/connect/')
    assert response.status_code == 409
    assert use_fake_processor.calls_for('create_onboarding_link') == []


def test_connect_onboarding_is_for_workers(api_client, poster, use_fake_processor):
    api_client.force_authenticate(user=poster)
    assert api_client.post('/api/account/connect/').status_code == 403
    assert use_fake_processor.calls == []


def test_connect_onboarding_processor_failure(api_client, new_worker, use_fake_processor):
    use_fake_processor.queue('create_connect_account', UNKNOWN)
    api_client.force_authenticate(user=new_worker)

    response = api_client.post('/api/account/connect/')

    assert response.status_code == 502
    new_worker.refresh_from_db()
    assert new_worker.stripe_connect_account_id is None

    retried = api_client.post('/api/account/connect/')
    assert retried.status_code == 201
    keys = [call[3] for call in use_fake_processor.calls_for('create_connect_account')]
    assert keys == [f'connect-{new_worker.id}'] * 2
