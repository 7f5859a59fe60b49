import hashlib
import json

from django.conf import settings
from django.utils import timezone


def derive_key(operation, *parts):
    """
    Deterministic idempotency key for a processor call.

    Short parts are kept readable (``transfer-12-7``); anything else is hashed
    so the key stays within the processor's length limit.
    """
    readable = [str(part) for part in parts]
    if all(len(part) <= 32 and part.replace('-', '').isalnum() for part in readable):
        return '-'.join([operation, *readable])
    digest = hashlib.sha256(json.dumps(readable, sort_keys=True).encode('utf-8')).hexdigest()
    return f'{operation}-{digest[:40]}'


def funding_window(now=None):
    """Index of the retry window ``now`` falls in. Retries of a post dedupe only within one window."""
    now = now or timezone.now()
    minutes = max(int(settings.FUNDING_RETRY_WINDOW_MINUTES), 1)
    return int(now.timestamp() // (minutes * 60))


def funding_key(poster_id, client_reference=None, draft=None, window=None, after=None):
    """
    Key for a job funding request.

    A client-supplied reference is used as is. Without one, the job draft and
    the retry window identify the request. ``after`` is the id of a finished
    funding payment the same request already produced, so posting again
    starts a new charge instead of replaying it.
    """
    if client_reference:
        seed = str(client_reference)
    else:
        seed = json.dumps({'draft': draft or {}, 'window': window}, sort_keys=True, default=str)
    if after is not None:
        seed = f'{seed}:after-{after}'
    return derive_key('funding', poster_id, hashlib.sha256(seed.encode('utf-8')).hexdigest()[:24])


def transfer_key(job_id, worker_id):
    return derive_key('transfer', job_id, worker_id)


def refund_key(job_id):
    return derive_key('refund', job_id)


def connect_account_key(user_id):
    return derive_key('connect', user_id)
