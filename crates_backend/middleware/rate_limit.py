"""
Per-client rate limits for the account endpoints

Registration and forgot-password share one budget; login has its own.
Counters live in the storage named by RATELIMIT_STORAGE_URI (in-process
memory by default, so each gunicorn worker counts separately).
"""

import logging

from flask import jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)

REGISTER_LIMIT = "5 per 15 minutes"
LOGIN_LIMIT = "10 per 15 minutes"

limiter = Limiter(get_remote_address)

register_limit = limiter.shared_limit(
    REGISTER_LIMIT,
    scope='register',
    error_message='Too many registration attempts, please try again later.'
)

login_limit = limiter.limit(
    LOGIN_LIMIT,
    error_message='Too many login attempts, please try again later.'
)


def init_rate_limiting(app):
    """Attach the limiter to app and answer 429 with a JSON error body"""
    limiter.init_app(app)

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        logger.warning(f"Rate limit exceeded for {get_remote_address()}: {e.description}")
        return jsonify({'error': e.description}), 429
