from django.contrib import admin
from .models import Earning


@admin.register(Earning)
class EarningAdmin(admin.ModelAdmin):
    list_display = ('id', 'worker', 'job', 'amount', 'service_fee', 'net_amount', 'status', 'settlement_state', 'date_paid')
    list_filter = ('status', 'settlement_state')
    search_fields = ('worker__email', 'job__title', 'transaction_id')
