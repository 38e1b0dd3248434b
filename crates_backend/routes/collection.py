"""
Collection Routes

All endpoints require a bearer token and only ever touch the caller's data.

- GET    /collection/                          - list collections with their albums
- POST   /collection/                          - create a collection
- GET    /collection/<id>                      - one collection
- PUT    /collection/<id>                      - rename / redescribe
- DELETE /collection/<id>                      - delete with its albums
- POST   /collection/album                     - add album to "My Collection"
- GET    /collection/album/<album_id>          - album details
- PUT    /collection/album/<album_id>          - patch allow-listed fields
- DELETE /collection/album/<album_id>          - remove album
- POST   /collection/album/<album_id>/enrich   - add Spotify audio features
- DELETE /collection/album/<album_id>/enrich   - cancel a running enrichment
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from crates_backend.enrichment import enrich_album
from crates_backend.errors import CratesError, EnrichmentCancelled, ValidationError
from crates_backend.middleware.auth_middleware import current_user_id, require_auth
from crates_backend.utils.helpers import parse_uuid

logger = logging.getLogger(__name__)
collection_bp = Blueprint('collection', __name__, url_prefix='/collection')


def _service():
    return current_app.extensions['collection_service']


# =============================================================================
# COLLECTIONS
# =============================================================================

@collection_bp.route('/', methods=['GET'])
@require_auth
def list_collections():
    try:
        return jsonify(_service().list_collections(current_user_id())), 200
    except Exception as e:
        logger.error(f"Error fetching collections: {e}", exc_info=True)
        return jsonify({'error': 'Failed to fetch collections'}), 500


@collection_bp.route('/', methods=['POST'])
@require_auth
def create_collection():
    """
    Request body:
        {"name": "Jazz", "description": "optional"}

    Returns:
        201: the new collection
        400: name missing
    """
    try:
        collection = _service().create_collection(current_user_id(), request.get_json(silent=True) or {})
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error creating collection: {e}", exc_info=True)
        return jsonify({'error': 'Failed to create collection'}), 500

    return jsonify(collection), 201


@collection_bp.route('/<collection_id>', methods=['GET'])
@require_auth
def get_collection(collection_id):
    try:
        return jsonify(_service().get_collection(current_user_id(), collection_id)), 200
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error fetching collection: {e}", exc_info=True)
        return jsonify({'error': 'Failed to fetch collection'}), 500


@collection_bp.route('/<collection_id>', methods=['PUT'])
@require_auth
def update_collection(collection_id):
    try:
        _service().update_collection(current_user_id(), collection_id, request.get_json(silent=True) or {})
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error updating collection: {e}", exc_info=True)
        return jsonify({'error': 'Failed to update collection'}), 500

    return jsonify({'message': 'Collection updated successfully'}), 200


@collection_bp.route('/<collection_id>', methods=['DELETE'])
@require_auth
def delete_collection(collection_id):
    try:
        _service().delete_collection(current_user_id(), collection_id)
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error deleting collection: {e}", exc_info=True)
        return jsonify({'error': 'Failed to delete collection'}), 500

    return jsonify({'message': 'Collection deleted successfully'}), 200


# =============================================================================
# ALBUMS
# =============================================================================

@collection_bp.route('/album', methods=['POST'])
@require_auth
def add_album():
    """
    Add album to the user's default collection

    Request body:
        {"title": "OK Computer", "artist": "Radiohead", "discogsId": 123, ...}

    Returns:
        201: the stored album, with its generated id
        400: title, artist or discogsId missing
        409: album already in the user's collection
    """
    try:
        album = _service().add_album(current_user_id(), request.get_json(silent=True) or {})
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error adding album: {e}", exc_info=True)
        return jsonify({'error': 'Failed to add album to collection'}), 500

    return jsonify(album), 201


@collection_bp.route('/album/<album_id>', methods=['GET'])
@require_auth
def get_album(album_id):
    try:
        return jsonify(_service().get_album(current_user_id(), album_id)), 200
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error fetching album: {e}", exc_info=True)
        return jsonify({'error': 'Failed to fetch album details'}), 500


@collection_bp.route('/album/<album_id>', methods=['PUT'])
@require_auth
def update_album(album_id):
    """
    Only artist, title, year, genre, style and notes can be changed

    Returns:
        200: {"message": "...", "updatedFields": [...]}
        400: no allowed field present, or nothing changed
        404: album not found
    """
    try:
        fields = _service().update_album(current_user_id(), album_id, request.get_json(silent=True) or {})
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error updating album: {e}", exc_info=True)
        return jsonify({'error': 'Failed to update album'}), 500

    return jsonify({
        'message': 'Album updated successfully',
        'updatedFields': fields
    }), 200


@collection_bp.route('/album/<album_id>', methods=['DELETE'])
@require_auth
def delete_album(album_id):
    try:
        _service().delete_album(current_user_id(), album_id)
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error deleting album: {e}", exc_info=True)
        return jsonify({'error': 'Failed to delete album from collection'}), 500

    return jsonify({'message': 'Album removed from collection successfully'}), 200


# =============================================================================
# ENRICHMENT
# =============================================================================

@collection_bp.route('/album/<album_id>/enrich', methods=['POST'])
@require_auth
def enrich_stored_album(album_id):
    """
    Add Spotify audio features to a stored album and save the new tracklist

    Request body:
        {"userAccessToken": "<spotify user token>"}

    Returns:
        200: {"album": {...}, "stats": {"total", "matched", "unmatched", "failed"}}
        400: token missing or album has no tracks
        404: album not found
        409: cancelled by DELETE on the same URL
    """
    data = request.get_json(silent=True) or {}
    user_id = current_user_id()
    service = _service()
    registry = current_app.extensions['enrichment_registry']
    settings = current_app.config['SETTINGS']

    try:
        user_access_token = data.get('userAccessToken')
        if not user_access_token:
            raise ValidationError("userAccessToken is required")

        album = service.get_album(user_id, album_id)
        if not album.get('tracks'):
            raise ValidationError("No tracks found to enhance")
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Error loading album for enrichment: {e}", exc_info=True)
        return jsonify({'error': 'Failed to enhance album with Spotify data'}), 500

    key = (user_id, album['id'])
    cancel_event = registry.start(key)

    try:
        result = enrich_album(
            album, user_access_token, current_app.extensions['spotify_client'],
            delay=settings.enrichment_delay, cancel_event=cancel_event
        )
        saved = service.replace_tracks(user_id, album['id'], result.album['tracks'])
    except EnrichmentCancelled as e:
        logger.info(f"Enrichment of album {album_id} cancelled: {e}")
        return jsonify({'error': 'Enrichment cancelled'}), 409
    except CratesError as e:
        return jsonify({'error': e.message}), e.status_code
    except Exception as e:
        logger.error(f"Enrichment error: {e}", exc_info=True)
        return jsonify({'error': 'Failed to enhance album with Spotify data'}), 500
    finally:
        registry.finish(key, cancel_event)

    return jsonify({'album': saved, 'stats': result.stats}), 200


@collection_bp.route('/album/<album_id>/enrich', methods=['DELETE'])
@require_auth
def cancel_enrichment(album_id):
    registry = current_app.extensions['enrichment_registry']

    if not registry.cancel((current_user_id(), parse_uuid(album_id) or album_id)):
        return jsonify({'error': 'No enrichment in progress'}), 404

    return jsonify({'message': 'Enrichment cancellation requested'}), 200
