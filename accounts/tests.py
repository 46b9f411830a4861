"""
Tests for accounts: roles, tokens and the auth endpoints.

Test Cases:
1. Role to permission mapping
2. Token issue/decode and refresh rotation
3. Signup, login, refresh, logout over HTTP
4. OTP generate/verify
5. Bearer authentication on /auth/me
"""
from datetime import timedelta
from unittest.mock import patch

from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import exceptions
from rest_framework.test import APITestCase

from accounts import services, tokens
from accounts.models import OTP, User
from accounts.roles import Permission, Role, permissions_for
from core.exceptions import NotFoundError, ValidationFailed


def make_user(role=Role.CUSTOMER, suffix='1', **extra):
    return User.objects.create_user(
        email=f"{role}{suffix}@example.com",
        password='password123',
        name=f"{role.title()} {suffix}",
        phone=extra.pop('phone', f"98765{suffix.zfill(5)}"),
        role=role,
        **extra
    )


class RolePermissionTestCase(SimpleTestCase):

    def test_admin_holds_every_permission(self):
        self.assertEqual(permissions_for(Role.ADMIN), frozenset(Permission))

    def test_customer_can_only_shop(self):
        perms = permissions_for(Role.CUSTOMER)
        self.assertIn(Permission.PLACE_ORDERS, perms)
        self.assertNotIn(Permission.FULFIL_ORDERS, perms)
        self.assertNotIn(Permission.VIEW_ALL_ORDERS, perms)

    def test_vendor_fulfils_but_does_not_administer(self):
        perms = permissions_for(Role.VENDOR)
        self.assertIn(Permission.FULFIL_ORDERS, perms)
        self.assertNotIn(Permission.ADMINISTER_ORDERS, perms)
        self.assertNotIn(Permission.PLACE_ORDERS, perms)

    def test_employee_reads_but_never_writes_orders(self):
        perms = permissions_for(Role.EMPLOYEE)
        self.assertIn(Permission.VIEW_ALL_ORDERS, perms)
        self.assertNotIn(Permission.ADMINISTER_ORDERS, perms)


class TokenTestCase(TestCase):

    def setUp(self):
        self.user = make_user()

    def test_access_token_round_trip(self):
        pair = tokens.issue_token_pair(self.user)
        payload = tokens.decode_token(pair.access_token, tokens.ACCESS)
        self.assertEqual(payload['sub'], str(self.user.pk))
        self.assertEqual(payload['role'], Role.CUSTOMER)

    def test_refresh_token_is_not_an_access_token(self):
        pair = tokens.issue_token_pair(self.user)
        with self.assertRaises(tokens.InvalidToken):
            tokens.decode_token(pair.refresh_token, tokens.ACCESS)

    def test_garbage_token_rejected(self):
        with self.assertRaises(tokens.InvalidToken):
            tokens.decode_token('not-a-token', tokens.ACCESS)

    def test_rotation_invalidates_previous_refresh_token(self):
        first = tokens.rotate_refresh_token(self.user)
        second = services.refresh_tokens(first.refresh_token)

        self.user.refresh_from_db()
        self.assertEqual(self.user.refresh_token, second.refresh_token)
        with self.assertRaises(exceptions.AuthenticationFailed):
            services.refresh_tokens(first.refresh_token)


@override_settings(RATE_LIMIT_ENABLED=False)
class AuthApiTestCase(APITestCase):

    def test_signup_creates_customer_and_returns_tokens(self):
        response = self.client.post('/api/auth/signup/', {
            'name': 'Asha',
            'phone': '98765 43210',
            'email': 'Asha@Example.com',
            'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertIn('access_token', response.data)
        user = User.objects.get(phone='9876543210')
        self.assertEqual(user.email, 'asha@example.com')
        self.assertEqual(user.role, Role.CUSTOMER)

    def test_signup_duplicate_phone_rejected(self):
        make_user(phone='9876543210')
        response = self.client.post('/api/auth/signup/', {
            'name': 'Other',
            'phone': '9876543210',
            'email': 'other@example.com',
            'password': 'secret123',
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Validation Error')

    def test_login_with_email_and_wrong_password(self):
        user = make_user()
        ok = self.client.post('/api/auth/login/', {'email': user.email, 'password': 'password123'}, format='json')
        bad = self.client.post('/api/auth/login/', {'email': user.email, 'password': 'nope'}, format='json')

        self.assertEqual(ok.status_code, 200)
        self.assertEqual(bad.status_code, 401)

    def test_login_requires_email_or_phone(self):
        response = self.client.post('/api/auth/login/', {'password': 'password123'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_logout_clears_refresh_token(self):
        user = make_user()
        pair = tokens.rotate_refresh_token(user)

        response = self.client.post('/api/auth/logout/', {'refresh_token': pair.refresh_token}, format='json')
        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertEqual(user.refresh_token, '')

        again = self.client.post('/api/auth/refresh-token/', {'refresh_token': pair.refresh_token}, format='json')
        self.assertEqual(again.status_code, 401)

    def test_me_with_bearer_token(self):
        user = make_user(role=Role.VENDOR)
        pair = tokens.issue_token_pair(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {pair.access_token}")

        response = self.client.get('/api/auth/me/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['role'], Role.VENDOR)
        self.assertIn(Permission.FULFIL_ORDERS.value, response.data['permissions'])

    def test_me_without_token_is_unauthorized(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, 401)

    def test_only_admin_creates_vendor_accounts(self):
        payload = {
            'name': 'Vendor',
            'phone': '9123456789',
            'email': 'vendor@example.com',
            'password': 'secret123',
            'role': Role.VENDOR,
        }
        self.client.force_authenticate(make_user(role=Role.MANAGER, suffix='2'))
        self.assertEqual(self.client.post('/api/auth/users/', payload, format='json').status_code, 403)

        self.client.force_authenticate(make_user(role=Role.ADMIN, suffix='3'))
        response = self.client.post('/api/auth/users/', payload, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['user']['role'], Role.VENDOR)


@override_settings(RATE_LIMIT_ENABLED=False)
class OtpTestCase(TestCase):

    def setUp(self):
        self.user = make_user(phone='9876500001')

    @patch('accounts.tasks.send_otp.delay')
    def test_generate_then_verify(self, mock_delay):
        with patch('accounts.services.secrets.randbelow', return_value=123456):
            with self.captureOnCommitCallbacks(execute=True):
                otp = services.generate_otp('9876500001')

        mock_delay.assert_called_once_with('9876500001', '123456', otp.message_id)
        self.assertNotEqual(otp.code_hash, '123456')

        user = services.verify_otp('9876500001', '123456')
        self.assertTrue(user.is_phone_verified)
        otp.refresh_from_db()
        self.assertTrue(otp.is_used)

    def test_wrong_code_rejected(self):
        with patch('accounts.services.secrets.randbelow', return_value=111111):
            services.generate_otp('9876500001')

        with self.assertRaises(ValidationFailed):
            services.verify_otp('9876500001', '222222')

    def test_expired_code_rejected(self):
        otp = OTP(phone='9876500001', message_id='m1', expires_at=timezone.now() - timedelta(seconds=1))
        otp.set_code('654321')
        otp.save()

        with self.assertRaises(ValidationFailed):
            services.verify_otp('9876500001', '654321')

    def test_unknown_phone(self):
        with self.assertRaises(NotFoundError):
            services.generate_otp('9000000000')
