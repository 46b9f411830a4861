"""
DRF authentication using ``Authorization: Bearer <access token>``.
"""
import logging

from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from . import tokens
from .models import User

logger = logging.getLogger(__name__)


class BearerTokenAuthentication(BaseAuthentication):
    keyword = b'bearer'

    def authenticate(self, request):
        header = get_authorization_header(request).split()
        if not header or header[0].lower() != self.keyword:
            return None
        if len(header) != 2:
            raise exceptions.AuthenticationFailed('Invalid authorization header')

        try:
            payload = tokens.decode_token(header[1].decode(), tokens.ACCESS)
        except (tokens.InvalidToken, UnicodeDecodeError) as e:
            logger.info(f"Rejected access token: {e}")
            raise exceptions.AuthenticationFailed('Invalid or expired access token')

        try:
            user = User.objects.get(pk=payload['sub'])
        except (User.DoesNotExist, ValueError):
            raise exceptions.AuthenticationFailed('User not found')
        if not user.is_active:
            raise exceptions.AuthenticationFailed('Account is deactivated')
        return user, payload

    def authenticate_header(self, request):
        return 'Bearer realm="api"'
