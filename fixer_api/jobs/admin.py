from django.contrib import admin
from .models import Job, Application


class ApplicationInline(admin.TabularInline):
    model = Application
    extra = 0
    readonly_fields = ('worker', 'status', 'date_applied', 'accepted_at')


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'poster', 'worker', 'status', 'payment_amount', 'total_amount', 'refund_pending', 'date_posted')
    list_filter = ('status', 'payment_type', 'refund_pending')
    search_fields = ('title', 'poster__email', 'worker__email')
    readonly_fields = ('service_fee', 'total_amount', 'version', 'completed_at', 'canceled_at')
    inlines = [ApplicationInline]


@admin.register(Application)
class ApplicationAdmin(admin.ModelAdmin):
    list_display = ('id', 'job', 'worker', 'status', 'date_applied')
    list_filter = ('status',)
    search_fields = ('job__title', 'worker__email')
