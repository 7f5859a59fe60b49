import logging

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)


def notify_on_commit(send_func, *args):
    """
    Send a notification once the surrounding transaction commits.
    A failed send is logged and never undoes the state change.
    """
    def _send():
        try:
            send_func(*args)
        except Exception as e:
            logger.error(f"Notification {send_func.__name__} failed: {str(e)}")

    transaction.on_commit(_send)


def send_application_accepted_email(worker, application):
    subject = "Your Application Has Been Accepted"
    message = f"""
    Hello {worker.get_full_name() or worker.email},

    Congratulations! Your application for the job "{application.job.title}" has been accepted.

    Acceptance Time: {application.accepted_at.strftime('%Y-%m-%d %H:%M:%S')}

    You can now contact the poster and get started.

    The {settings.SITE_NAME} Team
    """

    send_mail(
        subject=subject,
        message=message.strip(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[worker.email],
        fail_silently=False,
    )


def send_job_canceled_email(worker, job):
    subject = "A Job You Were Assigned Has Been Canceled"
    message = f"""
    Hello {worker.get_full_name() or worker.email},

    The poster has canceled the job "{job.title}". You no longer need to do this work,
    and the job will not appear in your assignments.

    The {settings.SITE_NAME} Team
    """

    send_mail(
        subject=subject,
        message=message.strip(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[worker.email],
        fail_silently=False,
    )


def send_connect_account_needed_email(worker, job):
    subject = "Connect a Payout Account to Get Paid"
    message = f"""
    Hello {worker.get_full_name() or worker.email},

    You completed "{job.title}" and your earning is waiting for you. Finish setting up
    your payout account at {settings.FRONTEND_DOMAIN} and we will send the payment.

    The {settings.SITE_NAME} Team
    """

    send_mail(
        subject=subject,
        message=message.strip(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[worker.email],
        fail_silently=False,
    )
