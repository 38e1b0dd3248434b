# routes/health.py
"""
Liveness endpoint: reports database reachability and which upstream
integrations have credentials configured.
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

logger = logging.getLogger(__name__)
health_bp = Blueprint('health', __name__)


def _integrations(settings):
    return {
        'discogs': bool(settings.discogs_token or (settings.discogs_key and settings.discogs_secret)),
        'spotify': bool(settings.spotify_client_id and settings.spotify_client_secret),
        'email': bool(settings.sendgrid_api_key),
    }


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Returns:
        200: database reachable
        503: database query failed
    """
    database = current_app.extensions['database']
    body = {
        'timestamp': time.time(),
        'integrations': _integrations(current_app.config['SETTINGS']),
    }

    try:
        row = database.ping()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        body.update(status='unhealthy', database='unavailable')
        return jsonify(body), 503

    body.update(
        status='healthy',
        database='connected',
        db_version=(row or {}).get('version', 'unknown'),
        pool_stats=database.get_pool_stats(),
    )
    return jsonify(body), 200
