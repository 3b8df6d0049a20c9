"""
Bearer-token authentication for the grade portal API.

Every /api/ request except the health check needs a signed token whose `sub`
is a portal user id and whose `user_role` claim is a portal role. The
resolved identity is put on flask.g for the route handlers.
"""
import logging
import os

import jwt
from flask import request, jsonify, g

from .config import JWT_SECRET_ENV, JWT_AUDIENCE
from .constants import ROLE_INSTRUCTOR, ROLE_STUDENT
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

PUBLIC_ROUTES = ('/api/health',)
PORTAL_ROLES = (ROLE_INSTRUCTOR, ROLE_STUDENT)


def get_jwt_secret():
    """Get the token signing secret from environment."""
    secret = os.getenv(JWT_SECRET_ENV)
    if not secret:
        raise RuntimeError(f'{JWT_SECRET_ENV} not configured')
    return secret


def validate_token(token):
    """
    Decode a portal token and return (user_id, role).
    Tokens without a role claim belong to students.

    Raises:
        AuthenticationError: expired, tampered, or missing the portal claims
    """
    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=['HS256'],
            audience=JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError('Session expired, sign in again')
    except jwt.InvalidTokenError:
        raise AuthenticationError('Invalid portal token')

    user_id = payload.get('sub')
    if not user_id:
        raise AuthenticationError('Token does not identify a portal user')

    role = payload.get('user_role', ROLE_STUDENT)
    if role not in PORTAL_ROLES:
        raise AuthenticationError(f'Unknown portal role: {role}')
    return user_id, role


def _bearer_token():
    scheme, _, token = request.headers.get('Authorization', '').partition(' ')
    if scheme != 'Bearer' or not token.strip():
        raise AuthenticationError('Authentication required')
    return token.strip()


def is_instructor():
    return getattr(g, 'user_role', None) == ROLE_INSTRUCTOR


def init_auth(app):
    """
    Register the before_request auth hook on the Flask app.
    Call this BEFORE registering blueprints.
    """
    @app.before_request
    def check_auth():
        # Non-API paths and the health check are open
        if not request.path.startswith('/api/') or request.path in PUBLIC_ROUTES:
            return None

        try:
            g.user_id, g.user_role = validate_token(_bearer_token())
        except AuthenticationError as e:
            logger.info("Rejected %s %s: %s", request.method, request.path, e)
            return jsonify({'error': str(e)}), 401
        return None
