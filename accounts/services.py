"""
Account Service Layer - registration, credential checks and OTP flow.
"""
import logging
import secrets
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework import exceptions

from core.exceptions import NotFoundError, ValidationFailed
from . import tokens
from .models import OTP, User
from .roles import Role

logger = logging.getLogger(__name__)


def normalize_phone(phone: str) -> str:
    return ''.join(phone.split())


def register_user(*, name, phone, email, password, address='', role=Role.CUSTOMER, company_name=''):
    """
    Create a user and issue its first token pair.

    Raises:
        ValidationFailed: phone or email already registered
    """
    phone = normalize_phone(phone)
    email = email.lower()
    if User.objects.filter(Q(phone=phone) | Q(email=email)).exists():
        raise ValidationFailed('Phone or email already exists')

    with transaction.atomic():
        user = User.objects.create_user(
            email=email,
            password=password,
            name=name,
            phone=phone,
            address=address,
            role=role,
            company_name=company_name,
        )
        pair = tokens.rotate_refresh_token(user)

    logger.info(f"Registered user #{user.pk} with role {user.role}")
    return user, pair


def authenticate_credentials(*, password, email=None, phone=None):
    """Return the user for valid credentials; raise AuthenticationFailed otherwise."""
    if email:
        user = User.objects.filter(email=email.lower()).first()
    else:
        user = User.objects.filter(phone=normalize_phone(phone or '')).first()

    if user is None:
        raise exceptions.AuthenticationFailed('Invalid credentials')
    if not user.is_active:
        raise exceptions.AuthenticationFailed('Account is deactivated')
    if not user.check_password(password):
        raise exceptions.AuthenticationFailed('Invalid credentials')
    return user


def refresh_tokens(refresh_token: str):
    try:
        payload = tokens.decode_token(refresh_token, tokens.REFRESH)
    except tokens.InvalidToken:
        raise exceptions.AuthenticationFailed('Invalid refresh token')

    user = User.objects.filter(pk=payload['sub'], is_active=True).first()
    if user is None or user.refresh_token != refresh_token:
        raise exceptions.AuthenticationFailed('Invalid refresh token')
    return tokens.rotate_refresh_token(user)


def logout(refresh_token: str) -> None:
    updated = User.objects.filter(refresh_token=refresh_token).exclude(refresh_token='').update(
        refresh_token='', updated_at=timezone.now()
    )
    if not updated:
        raise ValidationFailed('Invalid refresh token')


def generate_otp(phone: str) -> OTP:
    """
    Create a one-time code for a registered phone and queue its delivery.

    Raises:
        NotFoundError: no user with this phone
    """
    phone = normalize_phone(phone)
    if not User.objects.filter(phone=phone).exists():
        raise NotFoundError('User not found')

    code = f"{secrets.randbelow(10 ** 6):06d}"
    otp = OTP(
        phone=phone,
        message_id=uuid.uuid4().hex,
        expires_at=timezone.now() + timedelta(seconds=settings.OTP_TTL_SECONDS),
    )
    otp.set_code(code)
    otp.save()

    def dispatch():
        try:
            from .tasks import send_otp
            send_otp.delay(phone, code, otp.message_id)
        except Exception as e:
            logger.error(f"Failed to queue OTP delivery {otp.message_id}: {e}")

    transaction.on_commit(dispatch)
    logger.info(f"Generated OTP {otp.message_id}")
    return otp


def verify_otp(phone: str, code: str) -> User:
    """
    Consume a matching OTP and mark the phone as verified.

    Raises:
        ValidationFailed: no usable OTP or wrong code
        NotFoundError: user disappeared
    """
    phone = normalize_phone(phone)
    with transaction.atomic():
        otp = (
            OTP.objects.select_for_update()
            .filter(phone=phone, purpose=OTP.Purpose.SIGNUP, is_used=False, expires_at__gt=timezone.now())
            .order_by('-created_at')
            .first()
        )
        if otp is None:
            raise ValidationFailed('Invalid or expired OTP')
        if not otp.matches(code):
            raise ValidationFailed('OTP verification failed')

        otp.is_used = True
        otp.save(update_fields=['is_used'])

        updated = User.objects.filter(phone=phone).update(is_phone_verified=True, updated_at=timezone.now())
        if not updated:
            raise NotFoundError('User not found')

    return User.objects.get(phone=phone)
