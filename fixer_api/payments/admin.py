from django.contrib import admin
from .models import Payment, WebhookEvent


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('id', 'job', 'user', 'worker', 'amount', 'service_fee', 'type', 'status', 'provider', 'created_at')
    list_filter = ('provider', 'type', 'status')
    search_fields = ('transaction_id', 'idempotency_key', 'user__email', 'worker__email')
    readonly_fields = ('transaction_id', 'idempotency_key', 'created_at', 'updated_at', 'completed_at')


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ('provider', 'event_id', 'event_type', 'result', 'received_at')
    list_filter = ('provider', 'result')
    search_fields = ('event_id',)
