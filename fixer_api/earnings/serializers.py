from rest_framework import serializers

from .models import Earning


class EarningSerializer(serializers.ModelSerializer):
    job_title = serializers.CharField(source='job.title', read_only=True, default=None)

    class Meta:
        model = Earning
        fields = [
            'id', 'job', 'job_title', 'amount', 'service_fee', 'net_amount', 'status',
            'settlement_state', 'transaction_id', 'date_earned', 'date_paid',
        ]
        read_only_fields = fields


class EarningSummarySerializer(serializers.Serializer):
    total_earned = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_paid = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_pending = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_fees = serializers.DecimalField(max_digits=12, decimal_places=2)
    jobs_completed = serializers.IntegerField()
