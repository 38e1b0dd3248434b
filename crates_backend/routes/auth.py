"""
Authentication routes: register, verify email, login, password reset

This module handles:
- User registration with email/password (account starts unverified)
- Email verification and resending the verification email
- Login and bearer token issuance
- Forgot / reset password
- Current user information retrieval

Register and forgot-password share a 5 per 15 minutes budget per client;
login allows 10 per 15 minutes.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from crates_backend.auth_service import public_user
from crates_backend.errors import CratesError
from crates_backend.middleware.auth_middleware import require_auth
from crates_backend.middleware.rate_limit import login_limit, register_limit

logger = logging.getLogger(__name__)
auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _service():
    return current_app.extensions['auth_service']


@auth_bp.route('/register', methods=['POST'])
@register_limit
def register():
    """
    Register new user with email and password

    Request body:
        {"email": "user@example.com", "password": "password123", "name": "Jane"}

    Returns:
        201: {"message": "...", "userId": "..."}
        400: Invalid input
        409: Email already registered
        500: Server error
    """
    data = request.get_json(silent=True) or {}

    try:
        user = _service().register(data.get('email'), data.get('password'), data.get('name'))
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Registration error: {e}", exc_info=True)
        return jsonify({'error': 'Registration failed'}), 500

    return jsonify({
        'message': 'User registered successfully. Please check your email to verify your account.',
        'userId': str(user['id'])
    }), 201


@auth_bp.route('/login', methods=['POST'])
@login_limit
def login():
    """
    Login with email and password

    Returns:
        200: {"message": "Login successful", "token": "...", "user": {...}}
        400: Invalid input
        401: Invalid credentials or unverified account
        500: Server error
    """
    data = request.get_json(silent=True) or {}

    try:
        token, user = _service().login(data.get('email'), data.get('password'))
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Login error: {e}", exc_info=True)
        return jsonify({'error': 'Login failed'}), 500

    return jsonify({
        'message': 'Login successful',
        'token': token,
        'user': public_user(user)
    }), 200


@auth_bp.route('/verify-email', methods=['GET'])
def verify_email():
    """
    Verify an email address with the token sent at registration

    Returns:
        200: {"message": "Email verified successfully"}
        400: Missing, invalid, expired or superseded token
    """
    try:
        _service().verify_email(request.args.get('token'))
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Email verification error: {e}", exc_info=True)
        return jsonify({'error': 'Email verification failed'}), 500

    return jsonify({'message': 'Email verified successfully'}), 200


@auth_bp.route('/resend-verification', methods=['POST'])
def resend_verification():
    """
    Issue a fresh verification token and email it

    Returns:
        200: {"message": "Verification email sent successfully"}
        400: Missing email or already verified
        404: Unknown email
        500: Email could not be sent
    """
    data = request.get_json(silent=True) or {}

    try:
        _service().resend_verification(data.get('email'))
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Resend verification error: {e}", exc_info=True)
        return jsonify({'error': 'Failed to resend verification email'}), 500

    return jsonify({'message': 'Verification email sent successfully'}), 200


@auth_bp.route('/forgot-password', methods=['POST'])
@register_limit
def forgot_password():
    """
    Request password reset email

    Note: Always returns the same message to prevent email enumeration
    """
    data = request.get_json(silent=True) or {}

    try:
        message = _service().forgot_password(data.get('email'))
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Forgot password error: {e}", exc_info=True)
        return jsonify({'error': 'Password reset request failed'}), 500

    return jsonify({'message': message}), 200


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    """
    Reset password using token

    Request body:
        {"token": "...", "password": "newpassword123"}

    Returns:
        200: {"message": "Password reset successfully"}
        400: Invalid input, or invalid / expired / already used token
    """
    data = request.get_json(silent=True) or {}

    try:
        _service().reset_password(data.get('token'), data.get('password'))
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Reset password error: {e}", exc_info=True)
        return jsonify({'error': 'Password reset failed'}), 500

    return jsonify({'message': 'Password reset successfully'}), 200


@auth_bp.route('/me', methods=['GET'])
@require_auth
def get_current_user():
    """Get current user info (requires valid bearer token)"""
    return jsonify({'user': public_user(g.current_user)}), 200
