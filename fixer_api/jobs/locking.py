import logging
from functools import wraps

from django.db import IntegrityError

from .exceptions import JobNotFound, LifecycleConflict, StaleJob
from .models import Job

logger = logging.getLogger(__name__)


def get_job(job_id):
    try:
        return Job.objects.get(pk=job_id)
    except Job.DoesNotExist:
        raise JobNotFound()


def lock_job(job_id, expected_version=None):
    """
    Row-lock the job for the rest of the current transaction.
    Raises StaleJob if its version moved past ``expected_version``.
    """
    try:
        job = Job.objects.select_for_update().get(pk=job_id)
    except Job.DoesNotExist:
        raise JobNotFound()
    if expected_version is not None and job.version != expected_version:
        raise StaleJob(f"job {job_id} is at version {job.version}, expected {expected_version}")
    return job


def save_job(job, *fields):
    job.version += 1
    job.save(update_fields=[*fields, 'version', 'updated_at'])


def retry_on_conflict(func):
    """Run a job transition, retrying once with a fresh read on a conflict."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        for attempt in (1, 2):
            try:
                return func(*args, **kwargs)
            except (StaleJob, IntegrityError) as e:
                logger.warning(f"{func.__name__} conflict on attempt {attempt}: {str(e)}")
        raise LifecycleConflict()
    return wrapper
