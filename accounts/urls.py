"""
URL routing for authentication endpoints.
"""
from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    path('signup/', views.SignupView.as_view(), name='signup'),
    path('login/', views.LoginView.as_view(), name='login'),
    path('refresh-token/', views.RefreshTokenView.as_view(), name='refresh-token'),
    path('logout/', views.LogoutView.as_view(), name='logout'),
    path('otp/generate/', views.OtpGenerateView.as_view(), name='otp-generate'),
    path('otp/verify/', views.OtpVerifyView.as_view(), name='otp-verify'),
    path('me/', views.MeView.as_view(), name='me'),
    path('users/', views.UserCreateView.as_view(), name='user-create'),
]
