import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from .exceptions import (
    ApplicationNotFound, ApplicationNotPending, DuplicateApplication, JobLocked, JobNotOpen,
    NotAWorker, NotJobPoster,
)
from .locking import get_job, lock_job, retry_on_conflict, save_job
from .models import Application
from .utils import notify_on_commit, send_application_accepted_email

logger = logging.getLogger(__name__)
User = get_user_model()


def get_user(user_id):
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFound('User not found.')


class AssignmentCoordinator:
    """Moves a job from open to assigned by accepting one application."""

    def apply_to_job(self, job_id, worker_id, message='', hourly_rate=None, expected_duration=''):
        worker = get_user(worker_id)
        if not worker.is_worker:
            raise NotAWorker()
        job = get_job(job_id)
        if job.poster_id == worker.id:
            raise NotAWorker('You cannot apply to your own job.')
        if job.status != 'open':
            raise JobNotOpen()
        if job.refund_pending:
            raise JobLocked()
        if job.applications.filter(worker=worker).exists():
            raise DuplicateApplication()

        try:
            with transaction.atomic():
                # accept holds this lock while it assigns the job
                job = lock_job(job_id)
                if job.status != 'open':
                    raise JobNotOpen()
                if job.refund_pending:
                    raise JobLocked()
                application = Application.objects.create(
                    job=job,
                    worker=worker,
                    message=message or '',
                    hourly_rate=hourly_rate,
                    expected_duration=expected_duration or '',
                )
        except IntegrityError:
            raise DuplicateApplication()

        logger.info(f"Worker {worker.id} applied to job {job.id} (application {application.id})")
        return application

    def _get_application(self, job, application_id):
        try:
            return Application.objects.select_related('worker').get(pk=application_id, job=job)
        except Application.DoesNotExist:
            raise ApplicationNotFound()

    @retry_on_conflict
    def accept(self, job_id, application_id, poster_id):
        job = get_job(job_id)
        if job.poster_id != poster_id:
            raise NotJobPoster()
        application = self._get_application(job, application_id)
        if job.status != 'open':
            raise JobNotOpen()
        if job.refund_pending:
            raise JobLocked()
        if application.status != 'pending':
            raise ApplicationNotPending()

        with transaction.atomic():
            job = lock_job(job_id, expected_version=job.version)
            application = Application.objects.select_for_update().select_related('worker').get(pk=application.pk)
            if application.status != 'pending':
                raise ApplicationNotPending()

            now = timezone.now()
            application.status = 'accepted'
            application.accepted_at = now
            application.save(update_fields=['status', 'accepted_at', 'updated_at'])

            rejected = job.applications.filter(status='pending').exclude(pk=application.pk).update(
                status='rejected', updated_at=now,
            )

            job.worker = application.worker
            job.status = 'assigned'
            save_job(job, 'worker', 'status')

            notify_on_commit(send_application_accepted_email, application.worker, application)

        logger.info(
            f"Job {job.id} assigned to worker {application.worker_id} "
            f"(application {application.id}, {rejected} other applications rejected)"
        )
        return job

    def reject(self, job_id, application_id, poster_id):
        job = get_job(job_id)
        if job.poster_id != poster_id:
            raise NotJobPoster()
        application = self._get_application(job, application_id)
        if application.status != 'pending':
            raise ApplicationNotPending()

        with transaction.atomic():
            application = Application.objects.select_for_update().get(pk=application.pk)
            if application.status != 'pending':
                raise ApplicationNotPending()
            application.status = 'rejected'
            application.save(update_fields=['status', 'updated_at'])

        logger.info(f"Application {application.id} on job {job.id} rejected by poster {poster_id}")
        return application
