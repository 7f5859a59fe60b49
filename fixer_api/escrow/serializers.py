from decimal import Decimal

from rest_framework import serializers

from payments.models import Payment


class PaymentSummarySerializer(serializers.ModelSerializer):

    class Meta:
        model = Payment
        fields = (
            "id",
            "type",
            "amount",
            "service_fee",
            "provider",
            "transaction_id",
            "status",
            "created_at",
            "completed_at",
        )
        read_only_fields = fields


class JobEscrowSerializer(serializers.Serializer):
    """Money held for one job: what the poster paid, and where it went."""
    job_id = serializers.IntegerField(source="id")
    job_title = serializers.CharField(source="title")
    job_status = serializers.CharField(source="status")
    total_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    funded_amount = serializers.SerializerMethodField()
    refunded_amount = serializers.SerializerMethodField()
    paid_out_amount = serializers.SerializerMethodField()
    held_balance = serializers.SerializerMethodField()
    refund_pending = serializers.BooleanField()
    payments = serializers.SerializerMethodField()

    def _sum(self, job, payment_type, statuses):
        payments = [p for p in self._payments(job) if p.type == payment_type and p.status in statuses]
        return sum((p.amount for p in payments), Decimal("0.00"))

    def _payments(self, job):
        if not hasattr(job, "_escrow_payments"):
            job._escrow_payments = list(job.payments.order_by("created_at"))
        return job._escrow_payments

    def get_funded_amount(self, job):
        return str(self._sum(job, "payment", {"completed", "refunded"}))

    def get_refunded_amount(self, job):
        return str(self._sum(job, "refund", {"completed"}))

    def get_paid_out_amount(self, job):
        return str(self._sum(job, "transfer", {"completed"}))

    def get_held_balance(self, job):
        held = (
            self._sum(job, "payment", {"completed", "refunded"})
            - self._sum(job, "refund", {"completed"})
            - self._sum(job, "transfer", {"completed"})
        )
        return str(held)

    def get_payments(self, job):
        return PaymentSummarySerializer(self._payments(job), many=True).data
