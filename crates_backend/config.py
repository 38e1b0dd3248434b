"""
Configuration Module for the Crates API
Handles logging setup, environment settings and Flask app initialization
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional


def configure_logging(level=logging.INFO):
    """
    Configure application logging with standard format

    Returns:
        Logger instance for the config module
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).lower() == 'true'


@dataclass
class Settings:
    """Runtime settings read from the environment (see .env.example)"""

    jwt_secret: str
    database_url: Optional[str] = None
    db_use_pooling: bool = False

    discogs_key: Optional[str] = None
    discogs_secret: Optional[str] = None
    discogs_token: Optional[str] = None
    discogs_user_agent: str = 'CratesMusicCollection/1.0'

    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    spotify_redirect_uri: Optional[str] = None
    spotify_scope: str = 'user-read-private user-read-email'

    sendgrid_api_key: Optional[str] = None
    from_email: str = 'noreply@crates.app'
    app_url: str = 'http://localhost:5173'

    enrichment_delay: float = 0.1
    cors_origins: list = field(default_factory=lambda: ['*'])
    rate_limit_storage_uri: str = 'memory://'
    rate_limit_enabled: bool = True

    @classmethod
    def from_env(cls):
        """
        Build settings from environment variables

        Raises:
            ValueError: If JWT_SECRET is not set
        """
        jwt_secret = os.getenv('JWT_SECRET')
        if not jwt_secret:
            raise ValueError("JWT_SECRET environment variable must be set")

        database_url = os.getenv('DATABASE_URL')
        if not database_url and os.getenv('DB_HOST'):
            database_url = (
                f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', '')}"
                f"@{os.getenv('DB_HOST')}:{os.getenv('DB_PORT', '5432')}/{os.getenv('DB_NAME', 'crates')}"
            )

        origins = os.getenv('CORS_ORIGINS', '*')

        return cls(
            jwt_secret=jwt_secret,
            database_url=database_url,
            db_use_pooling=_env_bool('DB_USE_POOLING'),
            discogs_key=os.getenv('DISCOGS_KEY'),
            discogs_secret=os.getenv('DISCOGS_SECRET'),
            discogs_token=os.getenv('DISCOGS_TOKEN'),
            discogs_user_agent=os.getenv('DISCOGS_USER_AGENT', 'CratesMusicCollection/1.0'),
            spotify_client_id=os.getenv('SPOTIFY_CLIENT_ID'),
            spotify_client_secret=os.getenv('SPOTIFY_CLIENT_SECRET'),
            spotify_redirect_uri=os.getenv('SPOTIFY_REDIRECT_URI'),
            sendgrid_api_key=os.getenv('SENDGRID_API_KEY'),
            from_email=os.getenv('FROM_EMAIL', 'noreply@crates.app'),
            app_url=os.getenv('APP_URL', 'http://localhost:5173'),
            enrichment_delay=float(os.getenv('ENRICHMENT_DELAY', '0.1')),
            cors_origins=[o.strip() for o in origins.split(',') if o.strip()],
            rate_limit_storage_uri=os.getenv('RATELIMIT_STORAGE_URI', 'memory://'),
            rate_limit_enabled=_env_bool('RATELIMIT_ENABLED', 'true'),
        )


def init_app_config(app, settings):
    """
    Initialize Flask app configuration

    This sets up:
    - Custom JSON provider for date formatting
    - Settings object on app.config
    - Rate limiter storage and switch (read by flask-limiter)

    Args:
        app: Flask application instance
        settings: Settings instance
    """
    from crates_backend.utils.json_provider import CustomJSONProvider
    app.json = CustomJSONProvider(app)
    app.config['SETTINGS'] = settings
    app.config['RATELIMIT_STORAGE_URI'] = settings.rate_limit_storage_uri
    app.config['RATELIMIT_ENABLED'] = settings.rate_limit_enabled
