from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.JobListCreateAPIView.as_view(), name='list-create-jobs'),
    path('<int:job_id>/', my_views.JobRetrieveAPIView.as_view(), name='retrieve-job'),
    path('<int:job_id>/applications/', my_views.JobApplicationsAPIView.as_view(), name='job-applications'),
    path('<int:job_id>/applications/<int:application_id>/accept/', my_views.AcceptApplicationAPIView.as_view(), name='accept-application'),
    path('<int:job_id>/applications/<int:application_id>/reject/', my_views.RejectApplicationAPIView.as_view(), name='reject-application'),
    path('<int:job_id>/complete/', my_views.CompleteJobAPIView.as_view(), name='complete-job'),
    path('<int:job_id>/cancel/', my_views.CancelJobAPIView.as_view(), name='cancel-job'),
]
