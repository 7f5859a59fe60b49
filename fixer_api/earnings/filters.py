import django_filters

from .models import Earning


class EarningFilter(django_filters.FilterSet):
    earned_after = django_filters.IsoDateTimeFilter(field_name='date_earned', lookup_expr='gte')
    earned_before = django_filters.IsoDateTimeFilter(field_name='date_earned', lookup_expr='lte')

    class Meta:
        model = Earning
        fields = ['status', 'settlement_state']
