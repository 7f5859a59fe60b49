from rest_framework import serializers

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    job_title = serializers.CharField(source='job.title', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = [
            'id', 'job', 'job_title', 'user', 'worker', 'amount', 'service_fee', 'type', 'status',
            'provider', 'transaction_id', 'description', 'created_at', 'completed_at',
        ]
        read_only_fields = fields


class StripeWebhookSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = serializers.CharField()
    data = serializers.JSONField()

    def validate(self, attrs):
        event_type = attrs['type']
        data = attrs.get('data')
        event_object = data.get('object') if isinstance(data, dict) else None
        if not isinstance(event_object, dict):
            raise serializers.ValidationError('Missing data.object in webhook payload')

        if event_type.startswith(('payment_intent', 'transfer', 'refund', 'charge.refund', 'account')):
            if not event_object.get('id'):
                raise serializers.ValidationError(f'Missing object id in {event_type} webhook payload')

        attrs['object'] = event_object
        return attrs
