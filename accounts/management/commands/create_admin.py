"""
Management command to bootstrap the first admin account.

Reads credentials from the environment:
    ADMIN_EMAIL, ADMIN_PASSWORD (required)
    ADMIN_NAME, ADMIN_PHONE, ADMIN_ADDRESS (optional)

Usage:
    python manage.py create_admin
"""
import os

from django.core.management.base import BaseCommand

from accounts.models import User
from accounts.roles import Role


class Command(BaseCommand):
    help = 'Create the initial admin user from ADMIN_* environment variables'

    def handle(self, *args, **options):
        if User.objects.filter(role=Role.ADMIN).exists():
            self.stdout.write('Admin user already exists')
            return

        email = os.environ.get('ADMIN_EMAIL')
        password = os.environ.get('ADMIN_PASSWORD')
        if not email or not password:
            self.stdout.write(self.style.WARNING(
                'Admin credentials not found. Set ADMIN_EMAIL and ADMIN_PASSWORD.'
            ))
            return

        user = User.objects.create_user(
            email=email.lower(),
            password=password,
            name=os.environ.get('ADMIN_NAME', 'Super Admin'),
            phone=os.environ.get('ADMIN_PHONE', '9000000000'),
            address=os.environ.get('ADMIN_ADDRESS', 'Company Headquarters'),
            role=Role.ADMIN,
            is_staff=True,
            is_phone_verified=True,
            is_email_verified=True,
        )
        self.stdout.write(self.style.SUCCESS(f'Admin user created: {user.email}'))
