# routes/discogs.py
"""
Discogs proxy endpoints

- GET /api/discogs/search?q=&type=&page=&per_page=
- GET /api/discogs/releases/<id>
- GET /api/discogs/masters/<id>
- GET /api/discogs/artists/<id>
- GET /api/discogs/artists/<id>/releases
- GET /api/discogs/labels/<id>
- GET /api/discogs/labels/<id>/releases
- GET /api/discogs/marketplace/<release_id>
- GET /api/discogs/health
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from crates_backend.errors import UpstreamError

logger = logging.getLogger(__name__)
discogs_bp = Blueprint('discogs', __name__, url_prefix='/api/discogs')

# Query parameters that are consumed explicitly rather than passed through
_RESERVED_PARAMS = {'q', 'type', 'page', 'per_page'}


def _client():
    return current_app.extensions['discogs_client']


def _passthrough_params():
    return {k: v for k, v in request.args.items() if k not in _RESERVED_PARAMS}


def _paging():
    return {
        'page': request.args.get('page', 1, type=int),
        'per_page': request.args.get('per_page', 20, type=int),
    }


def _proxy(lookup, error_message):
    try:
        return jsonify(lookup()), 200
    except UpstreamError as e:
        logger.error(f"{error_message}: {e}")
        return jsonify({'error': error_message}), 500
    except Exception as e:
        logger.error(f"{error_message}: {e}", exc_info=True)
        return jsonify({'error': error_message}), 500


@discogs_bp.route('/search', methods=['GET'])
def search():
    """Search the Discogs database (releases by default)"""
    query = request.args.get('q')
    if not query:
        return jsonify({'error': 'Query parameter "q" is required'}), 400

    search_type = request.args.get('type', 'release')
    return _proxy(
        lambda: _client().search(query, type=search_type, **_paging(), **_passthrough_params()),
        'Failed to search Discogs'
    )


@discogs_bp.route('/releases/<int:release_id>', methods=['GET'])
def get_release(release_id):
    return _proxy(lambda: _client().get_release(release_id), 'Failed to get release details')


@discogs_bp.route('/masters/<int:master_id>', methods=['GET'])
def get_master(master_id):
    return _proxy(lambda: _client().get_master(master_id), 'Failed to get master release details')


@discogs_bp.route('/artists/<int:artist_id>', methods=['GET'])
def get_artist(artist_id):
    return _proxy(lambda: _client().get_artist(artist_id), 'Failed to get artist details')


@discogs_bp.route('/artists/<int:artist_id>/releases', methods=['GET'])
def get_artist_releases(artist_id):
    return _proxy(
        lambda: _client().get_artist_releases(artist_id, **_paging(), **_passthrough_params()),
        'Failed to get artist releases'
    )


@discogs_bp.route('/labels/<int:label_id>', methods=['GET'])
def get_label(label_id):
    return _proxy(lambda: _client().get_label(label_id), 'Failed to get label details')


@discogs_bp.route('/labels/<int:label_id>/releases', methods=['GET'])
def get_label_releases(label_id):
    return _proxy(
        lambda: _client().get_label_releases(label_id, **_paging(), **_passthrough_params()),
        'Failed to get label releases'
    )


@discogs_bp.route('/marketplace/<int:release_id>', methods=['GET'])
def get_marketplace(release_id):
    return _proxy(
        lambda: _client().get_release_marketplace(release_id, **_paging(), **_passthrough_params()),
        'Failed to get marketplace listings'
    )


@discogs_bp.route('/health', methods=['GET'])
def health():
    """
    Returns:
        200: Discogs answered a one-result search
        500: Discogs unreachable or rejected the credentials
    """
    try:
        _client().check_connection()
    except Exception as e:
        logger.error(f"Discogs health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'error': 'Discogs API connection failed'}), 500

    return jsonify({'status': 'healthy', 'message': 'Discogs API connection successful'}), 200
