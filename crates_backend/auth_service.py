"""
Account lifecycle: register, verify email, login, password reset

A user is created unverified and becomes verified through a one-time token
exchange. Login issues a 7-day bearer token. Password resets use a single-use
1-hour token stored on the user row.

Messages returned for login and forgot-password never reveal whether an
email address is registered.
"""

import logging
import re
from datetime import datetime, timezone

from crates_backend.auth_utils import (
    RESET_TOKEN_EXPIRY,
    TokenError,
    decode_token,
    generate_access_token,
    generate_reset_token,
    generate_verification_token,
    hash_password,
    verify_password,
)
from crates_backend.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from crates_backend.utils.helpers import safe_strip

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_PASSWORD_LENGTH = 8

INVALID_CREDENTIALS = "Invalid email or password"
UNVERIFIED_ACCOUNT = "Please verify your email address before logging in"
RESET_ACKNOWLEDGEMENT = "If an account with that email exists, a password reset link has been sent."
RESET_TOKEN_REJECTED = "Invalid or expired reset token"


def public_user(user: dict) -> dict:
    """The subset of a user row that is safe to return to clients"""
    return {
        'id': str(user['id']),
        'email': user['email'],
        'name': user.get('name'),
        'isVerified': bool(user.get('is_verified')),
    }


class AuthService:
    """
    Args:
        users: user repository (see user_db.PostgresUserRepository)
        email_service: EmailService used for verification and reset mail
        jwt_secret: signing secret for all tokens
    """

    def __init__(self, users, email_service, jwt_secret: str):
        self.users = users
        self.email_service = email_service
        self.jwt_secret = jwt_secret

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(self, email, password, name) -> dict:
        email = safe_strip(email)
        name = safe_strip(name)

        if not email or not password or not name:
            raise ValidationError("All fields are required")

        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters long")

        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please enter a valid email address")

        email = email.lower()

        if self.users.get_by_email(email):
            raise ConflictError("User with this email already exists")

        verification_token = generate_verification_token(email, self.jwt_secret)
        user = self.users.create(email, hash_password(password), name, verification_token)

        logger.info(f"User registered: {email}")

        # Registration succeeds even if the email cannot be delivered
        try:
            self.email_service.send_verification_email(email, verification_token)
        except Exception as e:
            logger.warning(f"Verification email failed for {email}: {e}")

        return user

    def verify_email(self, token) -> dict:
        if not token:
            raise ValidationError("Verification token is required")

        try:
            payload = decode_token(token, self.jwt_secret, expected_type='verify')
        except TokenError as e:
            logger.info(f"Verification token rejected: {e}")
            if e.expired:
                raise ValidationError("Verification token has expired")
            raise ValidationError("Invalid verification token")

        user = self.users.get_by_email(payload['email'])

        if not user:
            raise ValidationError("User not found")

        if user['is_verified']:
            raise ValidationError("User is already verified")

        if not user['verification_token']:
            raise ValidationError("No verification token found for user")

        # A reissued token invalidates every earlier one
        if user['verification_token'] != token:
            raise ValidationError("Verification token does not match")

        self.users.mark_verified(user['id'])
        logger.info(f"Email verified for user: {user['id']}")
        return user

    def resend_verification(self, email) -> None:
        if not email:
            raise ValidationError("Email is required")

        user = self.users.get_by_email(email)
        if not user:
            raise NotFoundError("User not found")

        if user['is_verified']:
            raise ValidationError("User is already verified")

        token = generate_verification_token(user['email'], self.jwt_secret)
        self.users.set_verification_token(user['id'], token)

        sent = self.email_service.send_verification_email(user['email'], token)
        if not sent and self.email_service.configured:
            raise UpstreamError("Failed to send verification email")

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email, password) -> tuple:
        """
        Returns:
            (token, user) on success

        Raises:
            ValidationError: Missing fields
            AuthError: Unknown email, wrong password or unverified account
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = self.users.get_by_email(email)
        if not user:
            raise AuthError(INVALID_CREDENTIALS)

        if not user['is_verified']:
            raise AuthError(UNVERIFIED_ACCOUNT)

        if not verify_password(password, user['password_hash']):
            raise AuthError(INVALID_CREDENTIALS)

        logger.info(f"User logged in: {user['email']}")
        return generate_access_token(user, self.jwt_secret), user

    def authenticate(self, token) -> dict:
        """
        Resolve a bearer token to its user row

        Raises:
            AuthError: If the token is invalid, expired, or the user no longer exists
        """
        try:
            payload = decode_token(token, self.jwt_secret, expected_type='access')
        except TokenError as e:
            raise AuthError(f"Invalid token: {e}")

        user = self.users.get_by_id(payload.get('user_id'))
        if not user:
            raise AuthError("User not found")

        return user

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email) -> str:
        if not email:
            raise ValidationError("Email is required")

        user = self.users.get_by_email(email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return RESET_ACKNOWLEDGEMENT

        reset_token = generate_reset_token(user['id'], self.jwt_secret)
        expires_at = datetime.now(timezone.utc) + RESET_TOKEN_EXPIRY
        self.users.set_reset_token(user['id'], reset_token, expires_at)

        try:
            sent = self.email_service.send_password_reset_email(user['email'], reset_token)
        except Exception as e:
            logger.warning(f"Password reset email failed for {user['email']}: {e}")
            sent = False

        if not sent:
            logger.warning(f"Password reset email not delivered for user: {user['id']}")

        return RESET_ACKNOWLEDGEMENT

    def reset_password(self, token, password) -> None:
        if not token or not password:
            raise ValidationError("Token and new password are required")

        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters long")

        try:
            payload = decode_token(token, self.jwt_secret, expected_type='reset')
        except TokenError as e:
            logger.info(f"Reset token rejected: {e}")
            raise ValidationError(RESET_TOKEN_REJECTED)

        user = self.users.get_by_id(payload.get('user_id'))
        if not user or user['reset_token'] != token:
            raise ValidationError(RESET_TOKEN_REJECTED)

        expires = user['reset_token_expires']
        if expires is None or expires <= datetime.now(timezone.utc):
            raise ValidationError(RESET_TOKEN_REJECTED)

        if not self.users.consume_reset_token(user['id'], token, hash_password(password)):
            raise ValidationError(RESET_TOKEN_REJECTED)

        logger.info(f"Password reset completed for user: {user['id']}")
