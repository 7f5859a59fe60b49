from django.db import models
from django.db.models import Q, Sum
from django.contrib.auth import get_user_model
from django.utils import timezone
from auditlog.registry import auditlog

User = get_user_model()


class EarningQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status='cancelled')

    def pending(self):
        return self.filter(status='pending')

    def paid(self):
        return self.filter(status='paid')

    def totals(self):
        return self.aggregate(
            gross=Sum('amount'),
            fees=Sum('service_fee'),
            net=Sum('net_amount'),
        )


class Earning(models.Model):
    """A worker's payable share of one completed job."""
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('cancelled', 'Cancelled'),
    )

    SETTLEMENT_STATE_CHOICES = (
        ('completion_requested', 'Completion requested'),
        ('payout_eligibility_checked', 'Payout eligibility checked'),
        ('transfer_requested', 'Transfer requested'),
        ('settled', 'Settled'),
        ('settlement_failed', 'Settlement failed'),
    )

    TRANSITIONS = {
        'pending': {'paid', 'cancelled'},
        'paid': set(),
        'cancelled': set(),
    }

    worker = models.ForeignKey(User, on_delete=models.PROTECT, related_name='earnings')
    job = models.ForeignKey('jobs.Job', on_delete=models.PROTECT, null=True, blank=True, related_name='earnings')
    payment = models.ForeignKey(
        'payments.Payment', on_delete=models.PROTECT, null=True, blank=True, related_name='earnings',
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    service_fee = models.DecimalField(max_digits=10, decimal_places=2)
    net_amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    settlement_state = models.CharField(
        max_length=32, choices=SETTLEMENT_STATE_CHOICES, default='completion_requested',
    )
    transaction_id = models.CharField(max_length=255, null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    date_earned = models.DateTimeField(auto_now_add=True)
    date_paid = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EarningQuerySet.as_manager()

    class Meta:
        ordering = ['-date_earned']
        constraints = [
            models.UniqueConstraint(
                fields=['job', 'worker'], condition=~Q(status='cancelled'), name='one_active_earning_per_job_worker',
            ),
            models.CheckConstraint(condition=Q(net_amount__gte=0), name='earning_net_amount_non_negative'),
        ]

    def __str__(self):
        return f"{self.worker} earned {self.net_amount} for {self.job} ({self.status})"

    def mark_paid(self, transaction_id):
        if 'paid' not in self.TRANSITIONS[self.status]:
            return False
        self.status = 'paid'
        self.settlement_state = 'settled'
        self.transaction_id = transaction_id
        self.date_paid = timezone.now()
        self.save(update_fields=['status', 'settlement_state', 'transaction_id', 'date_paid', 'updated_at'])
        return True

    def record_settlement_failure(self, message, transaction_id=None):
        failures = self.metadata.get('settlement_failures', [])
        failures.append({'at': timezone.now().isoformat(), 'message': message, 'transaction_id': transaction_id})
        self.metadata = {**self.metadata, 'settlement_failures': failures}
        self.settlement_state = 'settlement_failed'
        self.save(update_fields=['metadata', 'settlement_state', 'updated_at'])


auditlog.register(Earning)
