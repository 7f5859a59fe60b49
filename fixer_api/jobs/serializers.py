from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from .models import Job, Application


class JobSerializer(serializers.ModelSerializer):
    """
    Serializer for job list and detail payloads.

    All fields are read-only; jobs only change through the lifecycle endpoints.
    """
    poster = UserSummarySerializer(read_only=True)
    worker = UserSummarySerializer(read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'poster', 'worker', 'title', 'description', 'category', 'location', 'status',
            'payment_type', 'payment_amount', 'service_fee', 'total_amount', 'date_needed',
            'date_posted', 'completed_at', 'canceled_at', 'refund_pending',
        ]
        read_only_fields = fields


class JobCreateSerializer(serializers.Serializer):
    """
    Input for posting (and funding) a job.

    ``payment_amount`` is the worker's base pay; the service fee is added on top.
    ``client_reference`` lets a client retry a post without being charged twice.
    """
    title = serializers.CharField(max_length=255)
    description = serializers.CharField()
    category = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    location = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    payment_type = serializers.ChoiceField(choices=Job.PAYMENT_TYPE_CHOICES, default='fixed')
    payment_amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))
    date_needed = serializers.DateField(required=False, allow_null=True, default=None)
    payment_method = serializers.CharField(max_length=255, required=False, allow_blank=True, default=None)
    client_reference = serializers.CharField(max_length=255, required=False, allow_blank=True, default=None)


class ApplicationSerializer(serializers.ModelSerializer):
    worker = UserSummarySerializer(read_only=True)

    class Meta:
        model = Application
        fields = ['id', 'job', 'worker', 'status', 'message', 'hourly_rate', 'expected_duration', 'date_applied', 'accepted_at']
        read_only_fields = fields


class ApplicationCreateSerializer(serializers.Serializer):
    message = serializers.CharField(required=False, allow_blank=True, default='')
    hourly_rate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, default=None)
    expected_duration = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class CancelJobSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
