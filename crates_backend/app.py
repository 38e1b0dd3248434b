"""
Crates API Backend
A Flask API for managing a vinyl record collection, backed by Discogs and Spotify
"""

import logging
import os

from dotenv import load_dotenv
from flask import Flask, request
from flask_cors import CORS

from crates_backend import db_utils
from crates_backend.auth_service import AuthService
from crates_backend.collection_service import CollectionService
from crates_backend.config import Settings, configure_logging, init_app_config
from crates_backend.discogs_client import DiscogsClient
from crates_backend.email_service import EmailService
from crates_backend.enrichment import EnrichmentRegistry
from crates_backend.middleware.rate_limit import init_rate_limiting
from crates_backend.routes import register_blueprints
from crates_backend.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None, user_repository=None, collection_repository=None,
               spotify_client=None, discogs_client=None, email_service=None, database=None):
    """
    Build the Flask application

    Any collaborator left as None is built from settings; tests pass in-memory
    repositories and fake clients instead.

    Args:
        settings: Settings; read from the environment (and .env) when omitted
        user_repository / collection_repository: storage backends
        spotify_client / discogs_client / email_service: upstream clients
        database: object exposing ping() and get_pool_stats() for /health
    """
    if settings is None:
        load_dotenv()
        settings = Settings.from_env()

    app = Flask(__name__)
    CORS(app, origins=settings.cors_origins)
    init_app_config(app, settings)

    if user_repository is None or collection_repository is None:
        if not settings.database_url:
            raise ValueError("DATABASE_URL (or DB_HOST) must be set")
        db_utils.configure(settings.database_url, settings.db_use_pooling)

        from crates_backend.collection_db import PostgresCollectionRepository
        from crates_backend.user_db import PostgresUserRepository

        user_repository = user_repository or PostgresUserRepository()
        collection_repository = collection_repository or PostgresCollectionRepository()

    if email_service is None:
        email_service = EmailService(
            api_key=settings.sendgrid_api_key,
            from_email=settings.from_email,
            app_url=settings.app_url
        )

    if spotify_client is None:
        spotify_client = SpotifyClient(
            settings.spotify_client_id,
            settings.spotify_client_secret,
            redirect_uri=settings.spotify_redirect_uri,
            scope=settings.spotify_scope
        )

    if discogs_client is None:
        discogs_client = DiscogsClient(
            key=settings.discogs_key,
            secret=settings.discogs_secret,
            token=settings.discogs_token,
            user_agent=settings.discogs_user_agent
        )

    app.extensions['database'] = database or db_utils
    app.extensions['user_repository'] = user_repository
    app.extensions['email_service'] = email_service
    app.extensions['spotify_client'] = spotify_client
    app.extensions['discogs_client'] = discogs_client
    app.extensions['auth_service'] = AuthService(user_repository, email_service, settings.jwt_secret)
    app.extensions['collection_service'] = CollectionService(collection_repository)
    app.extensions['enrichment_registry'] = EnrichmentRegistry()

    init_rate_limiting(app)
    register_blueprints(app)

    # Request/response logging
    @app.before_request
    def log_request():
        """Log incoming requests"""
        logger.info(f"{request.method} {request.path}")

    @app.after_request
    def log_response(response):
        """Log response status"""
        logger.info(f"{request.method} {request.path} - {response.status_code}")
        return response

    logger.info(f"Spotify credentials present: {bool(settings.spotify_client_id)}")
    logger.info(f"Flask app initialized in PID {os.getpid()}")

    return app


if __name__ == '__main__':
    # Running directly with 'python -m crates_backend.app' (not gunicorn)
    configure_logging()
    logger.info("Starting Flask application directly (not gunicorn)...")

    application = create_app()
    try:
        application.run(debug=True, host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
    finally:
        logger.info("Shutting down...")
        db_utils.close_connection_pool()
        logger.info("Shutdown complete")
