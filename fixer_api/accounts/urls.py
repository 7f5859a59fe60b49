from rest_framework_simplejwt.views import TokenRefreshView
from django.urls import path


from . import views as my_views


urlpatterns = [
    path('account/token/', my_views.CustomTokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('account/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('account/connect-status/', my_views.ConnectStatusAPIView.as_view(), name='connect-status'),
    path('account/connect/', my_views.ConnectOnboardingAPIView.as_view(), name='connect-onboarding'),
]
