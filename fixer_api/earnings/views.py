from decimal import Decimal

from drf_yasg.utils import swagger_auto_schema
from rest_framework import views as drf_views, generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.authentication import JWTAuthentication

from jobs.permissions import IsWorker
from .filters import EarningFilter
from .models import Earning
from .serializers import EarningSerializer, EarningSummarySerializer

ZERO = Decimal('0.00')


class EarningListAPIView(generics.ListAPIView):
    """The current worker's earnings, newest first."""
    serializer_class = EarningSerializer
    permission_classes = [IsAuthenticated, IsWorker]
    authentication_classes = [JWTAuthentication]
    filterset_class = EarningFilter

    def get_queryset(self):
        return Earning.objects.filter(worker=self.request.user).select_related('job')


class EarningSummaryAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated, IsWorker]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Totals of the current worker's earnings",
        responses={200: EarningSummarySerializer}
    )
    def get(self, request):
        earnings = Earning.objects.active().filter(worker=request.user)
        totals = earnings.totals()
        summary = {
            'total_earned': totals['net'] or ZERO,
            'total_paid': earnings.paid().totals()['net'] or ZERO,
            'total_pending': earnings.pending().totals()['net'] or ZERO,
            'total_fees': totals['fees'] or ZERO,
            'jobs_completed': earnings.count(),
        }
        return Response(EarningSummarySerializer(summary).data, status=status.HTTP_200_OK)
