from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.EarningListAPIView.as_view(), name='list-earnings'),
    path('summary/', my_views.EarningSummaryAPIView.as_view(), name='earnings-summary'),
]
