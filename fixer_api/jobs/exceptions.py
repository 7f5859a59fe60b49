from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied


class JobNotFound(NotFound):
    default_detail = 'Job not found.'
    default_code = 'job_not_found'


class ApplicationNotFound(NotFound):
    default_detail = 'Application not found for this job.'
    default_code = 'application_not_found'


class NotJobPoster(PermissionDenied):
    default_detail = 'Only the poster of this job can do that.'
    default_code = 'not_job_poster'


class NotAssignedWorker(PermissionDenied):
    default_detail = 'Only the worker assigned to this job can do that.'
    default_code = 'not_assigned_worker'


class NotAWorker(PermissionDenied):
    default_detail = 'Only worker accounts can apply to jobs.'
    default_code = 'not_a_worker'


class NotAPoster(PermissionDenied):
    default_detail = 'Only poster accounts can post jobs.'
    default_code = 'not_a_poster'


class JobStateError(APIException):
    status_code = status.HTTP_409_CONFLICT


class JobNotOpen(JobStateError):
    default_detail = 'This job is no longer open.'
    default_code = 'job_not_open'


class JobNotAssigned(JobStateError):
    default_detail = 'This job is not assigned.'
    default_code = 'job_not_assigned'


class JobNotCancelable(JobStateError):
    default_detail = 'Completed or canceled jobs cannot be canceled.'
    default_code = 'job_not_cancelable'


class JobLocked(JobStateError):
    default_detail = 'A refund for this job is in progress.'
    default_code = 'job_locked'


class ApplicationNotPending(JobStateError):
    default_detail = 'This application has already been decided.'
    default_code = 'application_not_pending'


class DuplicateApplication(JobStateError):
    default_detail = 'You have already applied to this job.'
    default_code = 'duplicate_application'


class LifecycleConflict(JobStateError):
    default_detail = 'The job was changed by another request. Please retry.'
    default_code = 'lifecycle_conflict'


class StaleJob(Exception):
    """The job row changed between the read and the locked write."""
