from django.db.models import Q
from django.shortcuts import get_object_or_404
from drf_yasg.utils import swagger_auto_schema
from rest_framework import views as drf_views, generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework_simplejwt.authentication import JWTAuthentication

from earnings.serializers import EarningSerializer
from earnings.services import SettlementOrchestrator
from escrow.cancellation import CancellationService
from escrow.services import EscrowFundingService
from payments.serializers import PaymentSerializer
from . import serializers as my_serializers
from .filters import JobFilter
from .models import Job
from .permissions import IsPoster, IsWorker
from .services import AssignmentCoordinator


class JobListCreateAPIView(generics.ListCreateAPIView):
    """
    GET: jobs visible to the current user. Posters see their own jobs, workers
    see open jobs plus the jobs assigned to them.
    POST: post a job. The poster is charged payment_amount plus the service
    fee; the job is created once the charge succeeds (201). If the processor
    has not confirmed the charge yet the payment is returned with 202.
    """
    serializer_class = my_serializers.JobSerializer
    authentication_classes = [JWTAuthentication]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_class = JobFilter
    search_fields = ['title', 'description', 'location']
    ordering_fields = ['date_posted', 'payment_amount', 'date_needed']

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsPoster()]
        return [IsAuthenticated()]

    def get_queryset(self):
        user = self.request.user
        queryset = Job.objects.select_related('poster', 'worker')
        if user.is_staff:
            return queryset
        if user.account_type == 'poster':
            return queryset.filter(poster=user)
        return queryset.filter(Q(status='open', refund_pending=False) | Q(worker=user))

    @swagger_auto_schema(
        operation_summary="Post and fund a job",
        request_body=my_serializers.JobCreateSerializer,
        responses={
            201: my_serializers.JobSerializer,
            202: "Payment is processing",
            400: "Invalid input",
            402: "Payment declined",
        }
    )
    def post(self, request, *args, **kwargs):
        serializer = my_serializers.JobCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        outcome = EscrowFundingService().post_job(
            request.user.id,
            data['payment_amount'],
            data['payment_type'],
            title=data['title'],
            description=data['description'],
            category=data['category'],
            location=data['location'],
            date_needed=data['date_needed'],
            payment_method=data['payment_method'] or None,
            client_reference=data['client_reference'] or None,
        )

        if outcome.is_processing:
            return Response({
                'detail': "Payment is processing. The job will be posted once it is confirmed.",
                'payment': PaymentSerializer(outcome.payment).data,
                'client_secret': outcome.client_secret,
            }, status=status.HTTP_202_ACCEPTED)

        return Response({
            'detail': "Job posted successfully.",
            'job': my_serializers.JobSerializer(outcome.job).data,
            'payment': PaymentSerializer(outcome.payment).data,
        }, status=status.HTTP_201_CREATED)


class JobRetrieveAPIView(generics.RetrieveAPIView):
    serializer_class = my_serializers.JobSerializer
    permission_classes = [IsAuthenticated]
    authentication_classes = [JWTAuthentication]
    lookup_url_kwarg = 'job_id'

    def get_queryset(self):
        user = self.request.user
        queryset = Job.objects.select_related('poster', 'worker')
        if user.is_staff:
            return queryset
        return queryset.filter(Q(status='open') | Q(poster=user) | Q(worker=user))


class JobApplicationsAPIView(generics.ListCreateAPIView):
    """
    GET: the poster lists applications to their job.
    POST: a worker applies to an open job.
    """
    serializer_class = my_serializers.ApplicationSerializer
    authentication_classes = [JWTAuthentication]
    filter_backends = [OrderingFilter]
    ordering_fields = ['date_applied']
    ordering = ['-date_applied']

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsWorker()]
        return [IsAuthenticated(), IsPoster()]

    def get_queryset(self):
        job = get_object_or_404(Job, id=self.kwargs['job_id'])
        if job.poster_id != self.request.user.id:
            raise PermissionDenied("Only the poster of this job can view its applications.")
        return job.applications.select_related('worker')

    @swagger_auto_schema(
        operation_summary="Apply to a job",
        request_body=my_serializers.ApplicationCreateSerializer,
        responses={201: my_serializers.ApplicationSerializer, 409: "Job not open or already applied"}
    )
    def post(self, request, *args, **kwargs):
        serializer = my_serializers.ApplicationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        application = AssignmentCoordinator().apply_to_job(
            self.kwargs['job_id'], request.user.id, **serializer.validated_data,
        )
        return Response({
            'detail': "Application submitted successfully.",
            'application': my_serializers.ApplicationSerializer(application).data,
        }, status=status.HTTP_201_CREATED)


class AcceptApplicationAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated, IsPoster]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Accept an application and assign the job",
        responses={200: my_serializers.JobSerializer, 403: "Not the job poster", 409: "Job or application already decided"}
    )
    def post(self, request, job_id, application_id):
        job = AssignmentCoordinator().accept(job_id, application_id, request.user.id)
        return Response({
            'detail': "Application accepted.",
            'job': my_serializers.JobSerializer(job).data,
        }, status=status.HTTP_200_OK)


class RejectApplicationAPIView(drf_views.APIView):
    permission_classes = [IsAuthenticated, IsPoster]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(operation_summary="Reject a pending application")
    def post(self, request, job_id, application_id):
        application = AssignmentCoordinator().reject(job_id, application_id, request.user.id)
        return Response({
            'detail': "Application rejected.",
            'application': my_serializers.ApplicationSerializer(application).data,
        }, status=status.HTTP_200_OK)


class CompleteJobAPIView(drf_views.APIView):
    """
    The assigned worker marks the job complete. Payout follows right away when
    their payout account is active; otherwise the earning stays pending.
    """
    permission_classes = [IsAuthenticated, IsWorker]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Complete a job and settle the worker's earning",
        responses={200: "Job completed", 403: "Not the assigned worker", 409: "Job not assigned"}
    )
    def post(self, request, job_id):
        result = SettlementOrchestrator().complete_job(job_id, request.user.id)
        return Response({
            'detail': "Job completed.",
            'job': my_serializers.JobSerializer(result.job).data,
            'earning': EarningSerializer(result.earning).data if result.earning else None,
            'settlement_state': result.state,
        }, status=status.HTTP_200_OK)


class CancelJobAPIView(drf_views.APIView):
    """
    The poster cancels an open or assigned job and is refunded the full
    amount they paid. Returns 202 while the refund is being confirmed.
    """
    permission_classes = [IsAuthenticated, IsPoster]
    authentication_classes = [JWTAuthentication]

    @swagger_auto_schema(
        operation_summary="Cancel a job and refund the poster",
        request_body=my_serializers.CancelJobSerializer,
        responses={200: "Job canceled", 202: "Refund processing", 409: "Job not cancelable", 502: "Refund failed"}
    )
    def post(self, request, job_id):
        serializer = my_serializers.CancelJobSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        outcome = CancellationService().cancel_job(job_id, request.user.id, serializer.validated_data['reason'])
        payment = PaymentSerializer(outcome.payment).data if outcome.payment else None

        if outcome.is_processing:
            return Response({
                'detail': "Refund is processing. The job will be canceled once it is confirmed.",
                'job': my_serializers.JobSerializer(outcome.job).data,
                'payment': payment,
            }, status=status.HTTP_202_ACCEPTED)

        return Response({
            'detail': "Job canceled and refunded.",
            'job': my_serializers.JobSerializer(outcome.job).data,
            'payment': payment,
        }, status=status.HTTP_200_OK)
