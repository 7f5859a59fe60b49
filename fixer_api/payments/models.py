from django.db import models
from django.db.models import Q
from django.contrib.auth import get_user_model
from django.utils import timezone
from auditlog.registry import auditlog

User = get_user_model()


class PaymentQuerySet(models.QuerySet):
    def for_job(self, job):
        return self.filter(job=job)

    def funding(self):
        return self.filter(type='payment')

    def transfers(self):
        return self.filter(type='transfer')

    def refunds(self):
        return self.filter(type='refund')

    def completed(self):
        return self.filter(status='completed')

    def in_flight(self):
        return self.filter(status__in=['pending', 'processing'])


class Payment(models.Model):
    """
    One money movement through the processor.

    Rows are append-mostly: after creation only ``status`` (and the fields
    filled in when a status is confirmed) change, and only forwards.
    """
    TYPE_CHOICES = (
        ('payment', 'Payment'),     # poster -> escrow
        ('transfer', 'Transfer'),   # escrow -> worker connect account
        ('refund', 'Refund'),       # escrow -> poster
        ('payout', 'Payout'),
    )

    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    )

    # status -> statuses it may move to
    TRANSITIONS = {
        'pending': {'processing', 'completed', 'failed'},
        'processing': {'completed', 'failed'},
        'completed': {'refunded'},
        'failed': set(),
        'refunded': set(),
    }
    TERMINAL_STATUSES = {'completed', 'failed', 'refunded'}

    user = models.ForeignKey(User, on_delete=models.PROTECT, related_name='payment_records')
    worker = models.ForeignKey(User, on_delete=models.PROTECT, null=True, blank=True, related_name='received_payments')
    job = models.ForeignKey('jobs.Job', on_delete=models.PROTECT, null=True, blank=True, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    service_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    provider = models.CharField(max_length=50, blank=True)  # e.g., 'stripe'
    transaction_id = models.CharField(max_length=255, null=True, blank=True, unique=True)
    idempotency_key = models.CharField(max_length=255, null=True, blank=True, unique=True)
    description = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['job', 'type', 'status'], name='payment_job_type_status_idx'),
            models.Index(fields=['status', 'updated_at'], name='payment_status_updated_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gte=0), name='payment_amount_non_negative'),
        ]

    def __str__(self):
        return f"{self.type} of {self.amount} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS.get(self.status, set())

    def advance(self, new_status, *, transaction_id=None, save=True):
        """
        Move status forward. Returns False (and changes nothing) when the move
        would go backwards or leave a terminal status.
        """
        if new_status == self.status or not self.can_transition_to(new_status):
            return False
        update_fields = ['status', 'updated_at']
        self.status = new_status
        if new_status == 'completed':
            self.completed_at = timezone.now()
            update_fields.append('completed_at')
        if transaction_id and not self.transaction_id:
            self.transaction_id = transaction_id
            update_fields.append('transaction_id')
        if save:
            self.save(update_fields=update_fields)
        return True


class WebhookEvent(models.Model):
    """
    Stores processed webhook event IDs to ensure idempotency.
    """
    provider = models.CharField(max_length=50)
    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100, blank=True)
    result = models.CharField(max_length=50, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.provider}:{self.event_id}"


auditlog.register(Payment)
