from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from auditlog.models import AuditlogHistoryField
from auditlog.registry import auditlog

User = get_user_model()


class Job(models.Model):
    STATUS_CHOICES = (
        ('open', 'Open'),
        ('assigned', 'Assigned'),
        ('completed', 'Completed'),
        ('canceled', 'Canceled'),
    )

    PAYMENT_TYPE_CHOICES = (
        ('hourly', 'Hourly'),
        ('fixed', 'Fixed'),
    )

    poster = models.ForeignKey(User, related_name='posted_jobs', on_delete=models.PROTECT)
    worker = models.ForeignKey(User, related_name='assigned_jobs', on_delete=models.PROTECT, null=True, blank=True)
    title = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(max_length=100, blank=True)
    location = models.CharField(max_length=255, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open')
    payment_type = models.CharField(max_length=10, choices=PAYMENT_TYPE_CHOICES, default='fixed')
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2)
    service_fee = models.DecimalField(max_digits=10, decimal_places=2)
    # fixed when the job is funded, never recomputed
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)
    date_needed = models.DateField(null=True, blank=True)
    date_posted = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    refund_pending = models.BooleanField(default=False)

    history = AuditlogHistoryField()

    class Meta:
        ordering = ['-date_posted']
        indexes = [
            models.Index(fields=['status', 'date_posted'], name='job_status_posted_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(payment_amount__gt=0), name='job_payment_amount_positive'),
        ]

    def __str__(self):
        return f"{self.title} ({self.poster} -> {self.worker})"

    @property
    def is_open(self):
        return self.status == 'open'

    def funding_payment(self):
        return self.payments.funding().filter(status__in=['completed', 'refunded']).order_by('created_at').first()


class Application(models.Model):
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
    )

    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name='applications')
    worker = models.ForeignKey(User, on_delete=models.CASCADE, related_name='applications')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    message = models.TextField(blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    expected_duration = models.CharField(max_length=100, blank=True)
    date_applied = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    accepted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-date_applied']
        constraints = [
            models.UniqueConstraint(fields=['job', 'worker'], name='one_application_per_worker'),
            models.UniqueConstraint(
                fields=['job'], condition=Q(status='accepted'), name='one_accepted_application_per_job',
            ),
        ]

    def __str__(self):
        return f"{self.worker} -> {self.job} ({self.status})"


auditlog.register(Job)
auditlog.register(Application)
