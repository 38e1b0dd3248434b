"""
Authentication middleware for protecting Flask routes

This module provides:
- require_auth: Require a valid bearer token
"""

import logging
from functools import wraps

from flask import current_app, g, jsonify, request

from crates_backend.errors import AuthError

logger = logging.getLogger(__name__)


def get_bearer_token():
    """
    Extract the token from an "Authorization: Bearer <token>" header

    Returns:
        (token, error_message) - exactly one of them is None
    """
    auth_header = request.headers.get('Authorization')

    if not auth_header:
        return None, 'No authorization header'

    parts = auth_header.split(' ')
    if len(parts) != 2 or parts[0] != 'Bearer' or not parts[1]:
        return None, 'Invalid authorization header format'

    return parts[1], None


def require_auth(f):
    """
    Decorator to require a valid bearer token

    Usage:
        @collection_bp.route('/')
        @require_auth
        def list_collections():
            user = g.current_user

    g.current_user holds the user row (id, email, name, is_verified, ...).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token, error = get_bearer_token()
        if error:
            return jsonify({'error': error}), 401

        auth_service = current_app.extensions['auth_service']

        try:
            g.current_user = auth_service.authenticate(token)
        except AuthError as e:
            return jsonify({'error': e.message}), 401
        except Exception as e:
            logger.error(f"Authentication failed: {e}", exc_info=True)
            return jsonify({'error': 'Authentication failed'}), 500

        return f(*args, **kwargs)

    return decorated_function


def current_user_id() -> str:
    return str(g.current_user['id'])
