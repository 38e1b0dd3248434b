"""
Email service for sending authentication-related emails

This module provides email functionality for:
- Email verification emails
- Password reset emails

Uses the SendGrid REST API for delivery. When no API key is configured the
email is logged instead of sent.
"""

import logging

import requests

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class EmailService:
    """Sends transactional email through SendGrid"""

    def __init__(self, api_key: str = None, from_email: str = 'noreply@crates.app',
                 app_url: str = 'http://localhost:5173', session=None):
        self.api_key = api_key
        self.from_email = from_email
        self.app_url = app_url.rstrip('/')
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning("SendGrid not configured - emails will be logged but not sent")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """
        Send email using the SendGrid REST API

        Returns:
            True if email sent successfully, False otherwise
        """
        if not self.configured:
            logger.info(f"[EMAIL NOT SENT - No SendGrid API key] To: {to_email}")
            logger.info(f"[EMAIL] Subject: {subject}")
            return False

        data = {
            "personalizations": [
                {
                    "to": [{"email": to_email}],
                    "subject": subject
                }
            ],
            "from": {"email": self.from_email, "name": "Crates Music Collection"},
            "content": [
                {
                    "type": "text/html",
                    "value": html_content
                }
            ]
        }

        try:
            response = self.session.post(
                SENDGRID_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json"
                },
                json=data,
                timeout=10
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email send failed to {to_email}: {e}")
            return False

        if response.status_code in (200, 202):
            logger.info(f"Email sent to {to_email}: {response.status_code}")
            return True

        logger.error(f"Email send failed: {response.status_code} - {response.text}")
        return False

    def send_verification_email(self, email: str, token: str) -> bool:
        verify_url = f"{self.app_url}/verify-email?token={token}"

        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background-color: #1f2937; color: white; padding: 20px; text-align: center;">
                <h1 style="margin: 0; font-size: 24px;">Crates</h1>
                <p style="margin: 10px 0 0 0; opacity: 0.9;">Your Music Collection</p>
            </div>
            <div style="padding: 30px; background-color: #f9fafb;">
                <h2 style="color: #1f2937;">Welcome to Crates!</h2>
                <p>Please verify your email address by clicking the button below:</p>
                <p style="text-align: center; margin: 30px 0;">
                    <a href="{verify_url}"
                       style="background-color: #3b82f6; color: white; padding: 12px 30px;
                              text-decoration: none; border-radius: 6px;">Verify Email Address</a>
                </p>
                <p style="color: #6b7280; font-size: 14px;">Or copy and paste this link into your browser:</p>
                <p style="color: #3b82f6; font-size: 14px; word-break: break-all;">{verify_url}</p>
                <p style="color: #6b7280; font-size: 14px;">
                    This link will expire in 24 hours. If you didn't create an account with Crates,
                    you can safely ignore this email.
                </p>
            </div>
        </div>
        """

        logger.info(f"Sending verification email to: {email}")
        return self.send_email(email, "Verify your Crates account", html_content)

    def send_password_reset_email(self, email: str, token: str) -> bool:
        reset_url = f"{self.app_url}/reset-password?token={token}"

        html_content = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background-color: #1f2937; color: white; padding: 20px; text-align: center;">
                <h1 style="margin: 0; font-size: 24px;">Crates</h1>
            </div>
            <div style="padding: 30px; background-color: #f9fafb;">
                <h2 style="color: #1f2937;">Password Reset Request</h2>
                <p>You requested to reset your password. Click the button below to proceed:</p>
                <p style="text-align: center; margin: 30px 0;">
                    <a href="{reset_url}"
                       style="background-color: #DC2626; color: white; padding: 12px 30px;
                              text-decoration: none; border-radius: 6px;">Reset Password</a>
                </p>
                <p style="color: #DC2626; font-size: 14px; word-break: break-all;">{reset_url}</p>
                <p style="color: #6b7280; font-size: 14px;">
                    This link will expire in 1 hour.<br>
                    If you didn't request a password reset, you can safely ignore this email.
                </p>
            </div>
        </div>
        """

        logger.info(f"Sending password reset email to: {email}")
        return self.send_email(email, "Reset your Crates password", html_content)
