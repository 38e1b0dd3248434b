"""
Authentication utilities for JWT token management and password hashing

This module provides core authentication functionality including:
- Bearer (access) token generation, 7 days
- Email verification tokens, 24 hours
- Password reset tokens, 1 hour
- Password hashing with bcrypt
- Token validation and decoding
"""

import bcrypt
import jwt
from datetime import datetime, timedelta, timezone

JWT_ALGORITHM = 'HS256'
ACCESS_TOKEN_EXPIRY = timedelta(days=7)
VERIFICATION_TOKEN_EXPIRY = timedelta(hours=24)
RESET_TOKEN_EXPIRY = timedelta(hours=1)


class TokenError(ValueError):
    """Raised when a token cannot be decoded or has the wrong type"""

    def __init__(self, message: str, expired: bool = False):
        self.expired = expired
        super().__init__(message)


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with work factor 12

    Args:
        password: Plain text password to hash

    Returns:
        Bcrypt hashed password as string
    """
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash

    Returns:
        True if password matches hash, False otherwise (including a malformed hash)
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _encode(payload: dict, expiry: timedelta, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(payload, iat=now, exp=now + expiry)
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def generate_access_token(user: dict, secret: str) -> str:
    """
    Generate the bearer token returned by login

    Args:
        user: User row (id, email, name)
        secret: JWT signing secret
    """
    return _encode({
        'user_id': str(user['id']),
        'email': user['email'],
        'name': user.get('name'),
        'type': 'access',
    }, ACCESS_TOKEN_EXPIRY, secret)


def generate_verification_token(email: str, secret: str) -> str:
    return _encode({'email': email.lower(), 'type': 'verify'}, VERIFICATION_TOKEN_EXPIRY, secret)


def generate_reset_token(user_id, secret: str) -> str:
    return _encode({'user_id': str(user_id), 'type': 'reset'}, RESET_TOKEN_EXPIRY, secret)


def decode_token(token: str, secret: str, expected_type: str = None) -> dict:
    """
    Decode and validate JWT token

    Args:
        token: JWT token string
        secret: JWT signing secret
        expected_type: If given, the payload 'type' claim must match

    Returns:
        Decoded token payload

    Raises:
        TokenError: If token is expired, invalid or of the wrong type
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenError('Token has expired', expired=True)
    except jwt.InvalidTokenError:
        raise TokenError('Invalid token')

    if expected_type and payload.get('type') != expected_type:
        raise TokenError('Invalid token type')

    return payload
