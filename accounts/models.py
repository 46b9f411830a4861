"""
Account Models - marketplace users and one-time passwords.

Models:
    - User: login identity with a single role (admin, manager, employee, vendor, customer)
    - OTP: hashed one-time code sent to a phone number
"""
from django.contrib.auth.models import AbstractUser, UserManager
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils import timezone

from .roles import Role, STAFF_ROLES, permissions_for


class MarketplaceUserManager(UserManager):

    def create_user(self, username=None, email=None, password=None, **extra_fields):
        # email doubles as the username
        username = username or email
        return super().create_user(username, email, password, **extra_fields)

    def vendors(self):
        return self.filter(role=Role.VENDOR, is_active=True)


class User(AbstractUser):
    """
    Marketplace user. Authorization is derived from ``role`` only.
    """
    name = models.CharField(max_length=150, help_text="Display name")
    email = models.EmailField(unique=True, help_text="Login email (stored lowercase)")
    phone = models.CharField(
        max_length=15,
        unique=True,
        help_text="Phone number without spaces"
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.CUSTOMER,
        db_index=True,
        help_text="Marketplace role"
    )
    address = models.TextField(blank=True, default='')
    company_name = models.CharField(max_length=200, blank=True, default='')
    is_phone_verified = models.BooleanField(default=False)
    is_email_verified = models.BooleanField(default=False)
    refresh_token = models.TextField(
        blank=True,
        default='',
        help_text="Current refresh token; cleared on logout"
    )
    updated_at = models.DateTimeField(auto_now=True)

    objects = MarketplaceUserManager()

    REQUIRED_FIELDS = ['email', 'phone', 'name']

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['name']
        indexes = [
            models.Index(fields=['role', 'is_active']),
        ]

    def __str__(self):
        return f"{self.name or self.email} ({self.role})"

    @property
    def permissions(self) -> frozenset:
        return permissions_for(self.role)

    def has_role_permission(self, permission) -> bool:
        return permission in self.permissions

    @property
    def is_marketplace_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR

    @property
    def is_customer(self) -> bool:
        return self.role == Role.CUSTOMER


class OTP(models.Model):
    """
    One-time password for phone verification.

    Only a hash of the code is stored; a code is valid until it is used or
    ``expires_at`` passes.
    """

    class Purpose(models.TextChoices):
        SIGNUP = 'signup', 'Signup'

    phone = models.CharField(max_length=15, db_index=True)
    code_hash = models.CharField(max_length=128)
    purpose = models.CharField(max_length=20, choices=Purpose.choices, default=Purpose.SIGNUP)
    message_id = models.CharField(max_length=64, help_text="Dispatch reference")
    is_used = models.BooleanField(default=False)
    expires_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'OTP'
        verbose_name_plural = 'OTPs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['phone', 'purpose', 'is_used']),
        ]

    def __str__(self):
        return f"OTP {self.message_id} for {self.phone}"

    def set_code(self, code: str) -> None:
        self.code_hash = make_password(code)

    def matches(self, code: str) -> bool:
        return check_password(code, self.code_hash)

    @property
    def is_expired(self) -> bool:
        return timezone.now() >= self.expires_at
