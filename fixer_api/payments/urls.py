from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.PaymentListView.as_view(), name='list-payments'),
    path('webhooks/stripe/', my_views.StripeWebhookView.as_view(), name='stripe-webhook'),
]
