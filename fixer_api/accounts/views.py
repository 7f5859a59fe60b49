from rest_framework_simplejwt import views as jwt_views, authentication
from rest_framework import views as drf_Views, permissions, status
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema

from jobs.permissions import IsWorker

from . import serializers as my_serializers
from .services import refresh_connect_status, start_connect_onboarding


class CustomTokenObtainPairView(jwt_views.TokenObtainPairView):
    serializer_class = my_serializers.CustomTokenObtainPairSerializer


class ConnectStatusAPIView(drf_Views.APIView):
    """
    Refreshes the current user's payout (Connect) account status from the
    processor and returns it. When the processor cannot be reached the last
    known status is returned with ``stale`` set.
    """
    authentication_classes = [authentication.JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Refresh and return the payout account status",
        responses={200: my_serializers.ConnectStatusSerializer}
    )
    def get(self, request, *args, **kwargs):
        fresh = refresh_connect_status(request.user)
        data = my_serializers.ConnectStatusSerializer(request.user).data
        data['stale'] = fresh is None
        return Response(data, status=status.HTTP_200_OK)


class ConnectOnboardingAPIView(drf_Views.APIView):
    """
    Opens the worker's payout (Connect) account if needed and returns a
    hosted onboarding link. Responds 409 once the account is active.
    """
    authentication_classes = [authentication.JWTAuthentication]
    permission_classes = [permissions.IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_summary="Start payout account onboarding",
        responses={
            201: my_serializers.ConnectOnboardingSerializer,
            409: "Payout account already active",
            502: "Processor unavailable",
        }
    )
    def post(self, request, *args, **kwargs):
        onboarding = start_connect_onboarding(request.user)
        data = my_serializers.ConnectOnboardingSerializer(onboarding).data
        return Response(data, status=status.HTTP_201_CREATED)
