# routes/spotify.py
"""
Spotify proxy and OAuth broker endpoints

OAuth:
- GET  /api/spotify/auth                      - {authUrl}
- GET  /api/spotify/callback?code=            - exchange code for a token pair
- POST /api/spotify/refresh {refreshToken}    - new access token

Catalog (client credentials):
- GET  /api/spotify/search?q=&limit=&offset=
- GET  /api/spotify/track/<id>
- GET  /api/spotify/track/<id>/audio-features
- GET  /api/spotify/track/<id>/with-features
- GET  /api/spotify/tracks/audio-features?ids=
- GET  /api/spotify/search-track?title=&artist=

User authorization:
- POST /api/spotify/search-track-with-features {title, artist, userAccessToken}
- POST /api/spotify/enrich-album {album, userAccessToken}
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from crates_backend.enrichment import enrich_album
from crates_backend.errors import UpstreamError
from crates_backend.spotify_client import MAX_AUDIO_FEATURE_IDS

logger = logging.getLogger(__name__)
spotify_bp = Blueprint('spotify', __name__, url_prefix='/api/spotify')


def _client():
    return current_app.extensions['spotify_client']


def _upstream_failure(message, e):
    if isinstance(e, UpstreamError):
        logger.error(f"{message}: {e}")
    else:
        logger.error(f"{message}: {e}", exc_info=True)
    return jsonify({'error': message}), 500


# =============================================================================
# OAUTH
# =============================================================================

@spotify_bp.route('/auth', methods=['GET'])
def auth_url():
    return jsonify({'authUrl': _client().get_authorize_url(request.args.get('state'))}), 200


@spotify_bp.route('/callback', methods=['GET'])
def callback():
    code = request.args.get('code')
    if not code:
        return jsonify({'error': 'Authorization code required'}), 400

    try:
        token_data = _client().exchange_code_for_tokens(code)
    except Exception as e:
        return _upstream_failure('Failed to exchange authorization code', e)

    return jsonify({
        'message': 'Authorization successful',
        'accessToken': token_data.get('access_token'),
        'refreshToken': token_data.get('refresh_token'),
        'expiresIn': token_data.get('expires_in'),
    }), 200


@spotify_bp.route('/refresh', methods=['POST'])
def refresh():
    data = request.get_json(silent=True) or {}
    refresh_token = data.get('refreshToken')
    if not refresh_token:
        return jsonify({'error': 'Refresh token required'}), 400

    try:
        token_data = _client().refresh_access_token(refresh_token)
    except Exception as e:
        return _upstream_failure('Failed to refresh token', e)

    response = {
        'accessToken': token_data.get('access_token'),
        'expiresIn': token_data.get('expires_in'),
    }
    # Spotify only sometimes rotates the refresh token
    if token_data.get('refresh_token'):
        response['refreshToken'] = token_data['refresh_token']

    return jsonify(response), 200


# =============================================================================
# CATALOG
# =============================================================================

@spotify_bp.route('/search', methods=['GET'])
def search():
    query = request.args.get('q')
    if not query:
        return jsonify({'error': 'Query parameter "q" is required'}), 400

    try:
        results = _client().search_tracks(
            query,
            limit=request.args.get('limit', 20, type=int),
            offset=request.args.get('offset', 0, type=int),
        )
    except Exception as e:
        return _upstream_failure('Failed to search Spotify', e)

    return jsonify(results), 200


@spotify_bp.route('/track/<track_id>', methods=['GET'])
def get_track(track_id):
    try:
        return jsonify(_client().get_track(track_id)), 200
    except Exception as e:
        return _upstream_failure('Failed to get track details', e)


@spotify_bp.route('/track/<track_id>/audio-features', methods=['GET'])
def get_audio_features(track_id):
    try:
        return jsonify(_client().get_audio_features(track_id)), 200
    except Exception as e:
        return _upstream_failure('Failed to get audio features', e)


@spotify_bp.route('/track/<track_id>/with-features', methods=['GET'])
def get_track_with_features(track_id):
    try:
        return jsonify(_client().get_track_with_features(track_id)), 200
    except Exception as e:
        return _upstream_failure('Failed to get track with features', e)


@spotify_bp.route('/tracks/audio-features', methods=['GET'])
def get_multiple_audio_features():
    ids = request.args.get('ids')
    if not ids:
        return jsonify({'error': 'Query parameter "ids" is required'}), 400

    track_ids = [i for i in ids.split(',') if i]
    if len(track_ids) > MAX_AUDIO_FEATURE_IDS:
        return jsonify({'error': f'Maximum {MAX_AUDIO_FEATURE_IDS} track IDs allowed'}), 400

    try:
        return jsonify(_client().get_multiple_audio_features(track_ids)), 200
    except Exception as e:
        return _upstream_failure('Failed to get audio features', e)


@spotify_bp.route('/search-track', methods=['GET'])
def search_track():
    title = request.args.get('title')
    artist = request.args.get('artist')
    if not title or not artist:
        return jsonify({'error': 'Both "title" and "artist" parameters are required'}), 400

    try:
        result = _client().search_track_by_title_and_artist(title, artist)
    except Exception as e:
        return _upstream_failure('Failed to search for track', e)

    if not result:
        return jsonify({'error': 'Track not found'}), 404
    return jsonify(result), 200


# =============================================================================
# USER-AUTHORIZED LOOKUPS
# =============================================================================

@spotify_bp.route('/search-track-with-features', methods=['POST'])
def search_track_with_features():
    """
    Request body:
        {"title": "...", "artist": "...", "userAccessToken": "..."}

    Returns:
        200: {"track": {...}, "audioFeatures": {...}, "message": "..."}
        400: missing field
        404: no confident match
        500: Spotify failure
    """
    data = request.get_json(silent=True) or {}
    title = data.get('title')
    artist = data.get('artist')
    user_access_token = data.get('userAccessToken')

    if not title or not artist or not user_access_token:
        return jsonify({'error': 'Title, artist, and userAccessToken are required'}), 400

    logger.info(f"Searching Spotify with user auth for: '{title}' by '{artist}'")

    try:
        result = _client().search_track_with_audio_features(title, artist, user_access_token)
    except Exception as e:
        return _upstream_failure('Failed to search for track with features', e)

    if not result:
        return jsonify({'error': 'Track not found'}), 404
    return jsonify(result), 200


@spotify_bp.route('/enrich-album', methods=['POST'])
def enrich_posted_album():
    """
    Enrich an album supplied in the request body without saving it

    Request body:
        {"album": {"title", "artist", "tracks": [...]}, "userAccessToken": "..."}
    """
    data = request.get_json(silent=True) or {}
    album = data.get('album')
    user_access_token = data.get('userAccessToken')

    if not isinstance(album, dict) or not user_access_token:
        return jsonify({'error': 'album and userAccessToken are required'}), 400

    if not album.get('tracks'):
        return jsonify({'error': 'No tracks found to enhance'}), 400

    settings = current_app.config['SETTINGS']

    try:
        result = enrich_album(album, user_access_token, _client(), delay=settings.enrichment_delay)
    except Exception as e:
        logger.error(f"Enrichment error: {e}", exc_info=True)
        return jsonify({'error': 'Failed to enhance album with Spotify data'}), 500

    return jsonify({'album': result.album, 'stats': result.stats}), 200


@spotify_bp.route('/health', methods=['GET'])
def health():
    try:
        _client().get_client_access_token()
    except Exception as e:
        logger.warning(f"Spotify health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'error': 'Spotify service unavailable'}), 503

    return jsonify({'status': 'healthy', 'message': 'Spotify service is working'}), 200
