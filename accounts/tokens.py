"""
Bearer token issuance and verification.

Access tokens are short-lived; refresh tokens are long-lived and the current
one is stored on the user so logout and rotation invalidate the previous one.
"""
import uuid
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from jose import JWTError, jwt

ACCESS = 'access'
REFRESH = 'refresh'


class InvalidToken(Exception):
    pass


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


def _encode(user, token_type: str, lifetime: timedelta) -> str:
    now = timezone.now()
    payload = {
        'sub': str(user.pk),
        'role': user.role,
        'type': token_type,
        'iat': now,
        'exp': now + lifetime,
        'jti': uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def issue_token_pair(user) -> TokenPair:
    return TokenPair(
        access_token=_encode(user, ACCESS, timedelta(minutes=settings.ACCESS_TOKEN_LIFETIME_MINUTES)),
        refresh_token=_encode(user, REFRESH, timedelta(days=settings.REFRESH_TOKEN_LIFETIME_DAYS)),
    )


def decode_token(token: str, expected_type: str) -> dict:
    """Return the token claims or raise InvalidToken."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise InvalidToken(f"Invalid {expected_type} token: {e}") from e
    if payload.get('type') != expected_type:
        raise InvalidToken(f"Invalid {expected_type} token")
    return payload


def rotate_refresh_token(user) -> TokenPair:
    """Issue a fresh pair and persist the new refresh token."""
    pair = issue_token_pair(user)
    user.refresh_token = pair.refresh_token
    user.save(update_fields=['refresh_token', 'updated_at'])
    return pair
