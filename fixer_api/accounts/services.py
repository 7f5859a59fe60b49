import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from payments.exceptions import ConnectAccountActive, ConnectOnboardingFailed
from payments.idempotency import connect_account_key
from payments.providers.base import SUCCEEDED
from payments.services import PaymentService

logger = logging.getLogger(__name__)
User = get_user_model()


def refresh_connect_status(user, payment_service=None):
    """
    Ask the processor for the worker's Connect account status and store it.
    Returns the fresh status, or None when the processor could not be reached.
    """
    if not user.stripe_connect_account_id:
        status = 'none'
    else:
        payment_service = payment_service or PaymentService()
        status = payment_service.get_connect_account_status(user.stripe_connect_account_id)
        if status is None:
            logger.warning(f"Connect status for user {user.id} unavailable, keeping {user.connect_account_status}")
            return None

    if status != user.connect_account_status:
        logger.info(f"Connect status for user {user.id} changed: {user.connect_account_status} -> {status}")
    user.connect_account_status = status
    user.connect_status_checked_at = timezone.now()
    user.save(update_fields=['connect_account_status', 'connect_status_checked_at', 'updated_at'])
    return status


def apply_connect_account_update(account_id, status):
    """
    Store a Connect status pushed by the processor.
    Returns (user, previous_status), or (None, None) for an unknown account.
    """
    user = User.objects.filter(stripe_connect_account_id=account_id).first()
    if user is None:
        logger.warning(f"Account update for unknown connect account {account_id} ignored")
        return None, None

    previous = user.connect_account_status
    user.connect_account_status = status
    user.connect_status_checked_at = timezone.now()
    user.save(update_fields=['connect_account_status', 'connect_status_checked_at', 'updated_at'])
    logger.info(f"Connect account {account_id} of user {user.id}: {previous} -> {status}")
    return user, previous


def start_connect_onboarding(user, payment_service=None):
    """
    Open a payout (Connect) account for the worker if they have none and
    return a hosted onboarding link for it. Account creation is keyed on the
    user, so a retried request never opens a second account.
    """
    payment_service = payment_service or PaymentService()

    if user.stripe_connect_account_id:
        if refresh_connect_status(user, payment_service) == 'active':
            raise ConnectAccountActive()
    else:
        res = payment_service.create_connect_account(
            email=user.email, idempotency_key=connect_account_key(user.id), user_id=user.id,
        )
        if res['status'] != SUCCEEDED:
            logger.error(f"Connect account creation for user {user.id} {res['status']}: {res.get('message')}")
            raise ConnectOnboardingFailed()
        user.stripe_connect_account_id = res['transaction_id']
        user.connect_account_status = 'incomplete'
        user.connect_status_checked_at = timezone.now()
        user.save(update_fields=[
            'stripe_connect_account_id', 'connect_account_status', 'connect_status_checked_at', 'updated_at',
        ])
        logger.info(f"Connect account {user.stripe_connect_account_id} opened for user {user.id}")

    settings_page = f"{settings.FRONTEND_DOMAIN.rstrip('/')}/settings/payments"
    link = payment_service.create_onboarding_link(
        payee_ref=user.stripe_connect_account_id,
        refresh_url=settings_page,
        return_url=f'{settings_page}/success',
    )
    if link['status'] != SUCCEEDED:
        logger.error(f"Onboarding link for user {user.id} {link['status']}: {link.get('message')}")
        raise ConnectOnboardingFailed()

    return {
        'stripe_connect_account_id': user.stripe_connect_account_id,
        'connect_account_status': user.connect_account_status,
        'url': link['url'],
        'expires_at': link.get('expires_at'),
    }
