"""
Authentication guard for gateway routes.

Tokens come from the ``auth_token`` cookie or an ``Authorization: Bearer``
header. The decoded identity is attached to ``g.current_user``; the role
claim is trusted as of issuance, role changes apply at next login.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps

import redis
from flask import current_app, g
from flask_jwt_extended import (
    create_access_token,
    get_jwt,
    set_access_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
)

from app.errors import ForbiddenError, InvalidTokenError, NoTokenError, error_response
from app.extensions import jwt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    email: str
    role: str


class TokenBlocklist:
    """Revoked token ids in Redis, each kept until its token would expire anyway."""
    key_prefix = 'revoked-token:'

    def __init__(self, client):
        self.client = client

    @classmethod
    def from_url(cls, url):
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def revoke(self, jti, expires_at):
        ttl = int(expires_at - datetime.now(timezone.utc).timestamp())
        if ttl > 0:
            self.client.setex(self.key_prefix + jti, ttl, '1')

    def is_revoked(self, jti):
        return self.client.get(self.key_prefix + jti) is not None


@jwt.unauthorized_loader
def _missing_token(reason):
    return error_response(NoTokenError())


@jwt.invalid_token_loader
def _invalid_token(reason):
    logger.info(f"Rejected token: {reason}")
    return error_response(InvalidTokenError())


@jwt.expired_token_loader
def _expired_token(jwt_header, jwt_payload):
    return error_response(InvalidTokenError('Token has expired.'))


@jwt.revoked_token_loader
def _revoked_token(jwt_header, jwt_payload):
    return error_response(InvalidTokenError('Token has been revoked.'))


@jwt.token_in_blocklist_loader
def _is_token_revoked(jwt_header, jwt_payload):
    blocklist = current_app.extensions.get('token_blocklist')
    if blocklist is None:
        return False
    return blocklist.is_revoked(jwt_payload['jti'])


def issue_token(user):
    return create_access_token(
        identity=str(user.id),
        additional_claims={'userId': user.id, 'email': user.email, 'role': user.role},
    )


def set_auth_cookie(response, token):
    settings = current_app.extensions['settings']
    set_access_cookies(response, token, max_age=settings.cookie_max_age)
    return response


def clear_auth_cookie(response):
    unset_jwt_cookies(response)
    return response


def revoke_current_token():
    """Revoke the request's token if one is present and revocation is enabled."""
    blocklist = current_app.extensions.get('token_blocklist')
    if blocklist is None:
        return False
    verify_jwt_in_request(optional=True)
    claims = get_jwt()
    if not claims:
        return False
    blocklist.revoke(claims['jti'], claims['exp'])
    return True


def current_user() -> CurrentUser:
    return g.current_user


def auth_required(fn):
    """Reject with 401 NO_TOKEN / INVALID_TOKEN, else attach g.current_user."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        claims = get_jwt()
        g.current_user = CurrentUser(
            user_id=claims.get('userId'),
            email=claims.get('email'),
            role=claims.get('role'),
        )
        return fn(*args, **kwargs)
    return wrapper


def require_role(*roles):
    """
    Decorator to require specific roles
    Usage: @require_role('admin', 'receptionist')

    Must be applied under @auth_required.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, 'current_user', None)
            if user is None:
                raise NoTokenError()
            if user.role not in roles:
                raise ForbiddenError(f'Permission denied. Required roles: {", ".join(roles)}')
            return f(*args, **kwargs)
        return decorated_function
    return decorator
