from django.shortcuts import get_object_or_404
from rest_framework import permissions, views
from rest_framework.response import Response
from rest_framework_simplejwt.authentication import JWTAuthentication
from drf_yasg.utils import swagger_auto_schema

from jobs.models import Job
from .serializers import JobEscrowSerializer


class JobEscrowDetailView(views.APIView):
	"""Escrow ledger of a job, visible to its poster, its worker and staff."""
	permission_classes = [permissions.IsAuthenticated]
	authentication_classes = [JWTAuthentication]

	@swagger_auto_schema(
		operation_summary="Retrieve the escrow ledger of a job",
		responses={200: JobEscrowSerializer(), 404: "Not found"}
	)
	def get(self, request, job_id):
		job = get_object_or_404(Job, id=job_id)
		user = request.user
		if not (user.is_staff or job.poster_id == user.id or job.worker_id == user.id):
			self.permission_denied(request, message="Not authorised to access this escrow.")
		return Response(JobEscrowSerializer(job).data)
