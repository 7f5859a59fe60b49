import django_filters

from .models import Job


class JobFilter(django_filters.FilterSet):
    min_amount = django_filters.NumberFilter(field_name='payment_amount', lookup_expr='gte')
    max_amount = django_filters.NumberFilter(field_name='payment_amount', lookup_expr='lte')

    class Meta:
        model = Job
        fields = ['status', 'category', 'payment_type']
