from django.urls import path

from .views import JobEscrowDetailView

urlpatterns = [
	path("<int:job_id>/escrow/", JobEscrowDetailView.as_view(), name="job-escrow-detail"),
]
