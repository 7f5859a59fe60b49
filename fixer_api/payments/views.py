import logging

from django.db.models import Q
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from .filters import PaymentFilter
from .models import Payment
from .serializers import PaymentSerializer
from .services import PaymentService
from .tasks import task_apply_processor_notification

logger = logging.getLogger(__name__)


class PaymentListView(generics.ListAPIView):
    """Payments the current user made or received."""
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    authentication_classes = [JWTAuthentication]
    filterset_class = PaymentFilter

    @swagger_auto_schema(
        operation_summary="List payments for the current user",
        responses={200: PaymentSerializer(many=True)}
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    def get_queryset(self):
        user = self.request.user
        queryset = Payment.objects.select_related('job')
        if user.is_staff:
            return queryset
        return queryset.filter(Q(user=user) | Q(worker=user))


class StripeWebhookView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(auto_schema=None)
    def post(self, request):
        signature = request.META.get('HTTP_STRIPE_SIGNATURE')
        notification = PaymentService(provider_name='stripe').parse_notification(request.body, signature)
        if notification is None:
            return Response({'detail': 'Event ignored.'}, status=status.HTTP_200_OK)

        logger.info(f"Stripe event {notification.event_id} ({notification.event_type}) queued")
        task_apply_processor_notification.delay(notification.to_dict())
        return Response({'detail': 'Event received.'}, status=status.HTTP_200_OK)
