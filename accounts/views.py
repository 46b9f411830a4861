"""
Account API Views.

Implements:
- POST /auth/signup, /auth/login, /auth/refresh-token, /auth/logout
- POST /auth/otp/generate, /auth/otp/verify
- GET /auth/me
- POST /auth/users (admin: create staff and vendor accounts)
"""
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import rate_limit
from . import services, tokens
from .permissions import require
from .roles import Permission
from .serializers import (
    LoginSerializer,
    OtpGenerateSerializer,
    OtpVerifySerializer,
    RefreshTokenSerializer,
    SignupSerializer,
    UserCreateSerializer,
    UserSerializer,
    token_response,
)

logger = logging.getLogger(__name__)


class SignupView(APIView):
    """POST: Register a customer account and return tokens."""
    permission_classes = [AllowAny]

    @rate_limit('signup', max_requests=10, window_seconds=60)
    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, pair = services.register_user(**serializer.validated_data)
        return Response(token_response(user, pair, 'User created successfully'), status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """POST: Exchange email/phone and password for a token pair."""
    permission_classes = [AllowAny]

    @rate_limit('login', max_requests=10, window_seconds=60)
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.authenticate_credentials(**serializer.validated_data)
        pair = tokens.rotate_refresh_token(user)
        logger.info(f"User #{user.pk} logged in")
        return Response(token_response(user, pair, 'Login successful'))


class RefreshTokenView(APIView):
    """POST: Rotate the refresh token and issue a new access token."""
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RefreshTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pair = services.refresh_tokens(serializer.validated_data['refresh_token'])
        return Response({'access_token': pair.access_token, 'refresh_token': pair.refresh_token})


class LogoutView(APIView):
    """POST: Invalidate the stored refresh token."""
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = RefreshTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        services.logout(serializer.validated_data['refresh_token'])
        return Response({'message': 'Logged out successfully'})


class OtpGenerateView(APIView):
    """POST: Send a one-time code to a registered phone."""
    permission_classes = [AllowAny]

    @rate_limit('otp', max_requests=5, window_seconds=300)
    def post(self, request):
        serializer = OtpGenerateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        otp = services.generate_otp(serializer.validated_data['phone'])
        return Response({'message': 'OTP sent', 'message_id': otp.message_id, 'send_channel': 'sms'})


class OtpVerifyView(APIView):
    """POST: Verify a one-time code and mark the phone as verified."""
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = OtpVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = services.verify_otp(serializer.validated_data['phone'], serializer.validated_data['otp'])
        return Response({'message': 'OTP verified', 'user': UserSerializer(user).data})


class MeView(APIView):
    """GET: Current user with the permissions granted by its role."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = UserSerializer(request.user).data
        data['permissions'] = sorted(p.value for p in request.user.permissions)
        return Response(data)


class UserCreateView(APIView):
    """POST: Create an account with any role (admin only)."""
    permission_classes = [require(Permission.MANAGE_USERS)]

    def post(self, request):
        serializer = UserCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user, _ = services.register_user(**serializer.validated_data)
        return Response(
            {'message': 'User created successfully', 'user': UserSerializer(user).data},
            status=status.HTTP_201_CREATED
        )
