"""
Collection store

Business rules for a user's collections and the album records inside them.
Storage goes through a repository (see collection_db.PostgresCollectionRepository);
this module owns validation, de-duplication, the default collection and the
translation between storage rows and the camelCase JSON the client speaks.
"""

import logging
from datetime import datetime, timezone

from crates_backend.errors import (
    ConflictError,
    DuplicateAlbumError,
    NotFoundError,
    ValidationError,
)
from crates_backend.utils.helpers import safe_strip

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "My Collection"
DEFAULT_COLLECTION_DESCRIPTION = "Your vinyl collection"

# client field -> storage column
ALBUM_FIELDS = {
    'title': 'title',
    'artist': 'artist',
    'year': 'year',
    'thumb': 'thumb',
    'discogsId': 'discogs_id',
    'addedAt': 'added_at',
    'genre': 'genre',
    'style': 'style',
    'country': 'country',
    'format': 'format',
    'label': 'label',
    'catno': 'catno',
    'barcode': 'barcode',
    'tracks': 'tracks',
    'notes': 'notes',
    'masterId': 'master_id',
    'status': 'status',
}

UPDATABLE_ALBUM_FIELDS = ['artist', 'title', 'year', 'genre', 'style', 'notes']

UPDATABLE_COLLECTION_FIELDS = ['name', 'description']


def serialize_album(row: dict) -> dict:
    """Storage row -> client JSON; unset optional fields are omitted"""
    album = {'id': str(row['id'])}
    for field, column in ALBUM_FIELDS.items():
        value = row.get(column)
        if value is not None:
            album[field] = value
    album.setdefault('tracks', [])
    return album


def serialize_collection(row: dict) -> dict:
    return {
        'id': str(row['id']),
        'name': row['name'],
        'description': row.get('description'),
        'createdAt': row.get('created_at'),
        'updatedAt': row.get('updated_at'),
        'records': [serialize_album(album) for album in row.get('records', [])],
    }


def _parse_added_at(value):
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError("addedAt must be an ISO-8601 timestamp")


def _parse_discogs_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("discogsId must be an integer")


class CollectionService:
    """All operations are scoped to the user_id passed in"""

    def __init__(self, repository):
        self.repository = repository

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def list_collections(self, user_id) -> list:
        return [serialize_collection(c) for c in self.repository.list_collections(user_id)]

    def get_collection(self, user_id, collection_id) -> dict:
        collection = self.repository.get_collection(user_id, collection_id)
        if not collection:
            raise NotFoundError("Collection not found")
        return serialize_collection(collection)

    def create_collection(self, user_id, data: dict) -> dict:
        data = data or {}
        name = safe_strip(data.get('name'))
        if not name:
            raise ValidationError("Collection name is required")

        collection = self.repository.create_collection(user_id, name, safe_strip(data.get('description')))
        logger.info(f"User {user_id} created collection {collection['id']}")
        return serialize_collection(collection)

    def update_collection(self, user_id, collection_id, data: dict) -> None:
        fields = {k: safe_strip(data[k]) for k in UPDATABLE_COLLECTION_FIELDS if k in (data or {})}

        if 'name' in fields and not fields['name']:
            raise ValidationError("Collection name is required")

        if not self.repository.update_collection(user_id, collection_id, fields):
            raise NotFoundError("Collection not found")

    def delete_collection(self, user_id, collection_id) -> None:
        if not self.repository.delete_collection(user_id, collection_id):
            raise NotFoundError("Collection not found")
        logger.info(f"User {user_id} deleted collection {collection_id}")

    def get_or_create_default_collection(self, user_id) -> dict:
        """
        Return the user's "My Collection", creating it on first use

        Idempotent: repeated calls return the same collection.
        """
        collection = self.repository.find_collection_by_name(user_id, DEFAULT_COLLECTION_NAME)
        if collection:
            return collection

        logger.info(f"Creating default collection for user {user_id}")
        return self.repository.create_collection(
            user_id, DEFAULT_COLLECTION_NAME, DEFAULT_COLLECTION_DESCRIPTION
        )

    # ------------------------------------------------------------------
    # Albums
    # ------------------------------------------------------------------

    def add_album(self, user_id, album_data: dict) -> dict:
        """
        Append an album to the user's default collection

        Raises:
            ValidationError: title, artist or discogsId missing
            ConflictError: the user already holds this discogsId
        """
        album_data = album_data or {}

        if not album_data.get('title') or not album_data.get('artist') or not album_data.get('discogsId'):
            raise ValidationError("Title, artist, and discogsId are required")

        discogs_id = _parse_discogs_id(album_data['discogsId'])

        if self.repository.album_exists(user_id, discogs_id):
            raise ConflictError("Album already exists in your collection")

        collection = self.get_or_create_default_collection(user_id)

        record = {column: album_data.get(field) for field, column in ALBUM_FIELDS.items()}
        record['discogs_id'] = discogs_id
        if record['year'] is not None:
            record['year'] = str(record['year'])
        record['added_at'] = _parse_added_at(album_data.get('addedAt'))

        try:
            row = self.repository.insert_album(user_id, collection['id'], record)
        except DuplicateAlbumError:
            # Lost a race with a concurrent add of the same release
            raise ConflictError("Album already exists in your collection")

        logger.info(f"User {user_id} added album {row['id']} (discogs {discogs_id})")
        return serialize_album(row)

    def get_album(self, user_id, album_id) -> dict:
        row = self.repository.get_album(user_id, album_id)
        if not row:
            raise NotFoundError("Album not found")
        return serialize_album(row)

    def update_album(self, user_id, album_id, patch: dict) -> list:
        """
        Apply an allow-listed patch

        Returns:
            Names of the fields that were supplied
        """
        patch = patch or {}
        updates = {k: patch[k] for k in UPDATABLE_ALBUM_FIELDS if k in patch}

        if not updates:
            raise ValidationError("No valid fields to update")

        for required in ('title', 'artist'):
            if required in updates and not updates[required]:
                raise ValidationError(f"{required.capitalize()} cannot be empty")

        if updates.get('year') is not None:
            updates['year'] = str(updates['year'])

        current = self.repository.get_album(user_id, album_id)
        if not current:
            raise NotFoundError("Album not found")

        changed = {
            ALBUM_FIELDS[k]: v for k, v in updates.items()
            if current.get(ALBUM_FIELDS[k]) != v
        }
        if not changed:
            raise ValidationError("No changes made")

        if not self.repository.update_album(user_id, album_id, changed):
            raise NotFoundError("Album not found")

        logger.info(f"User {user_id} updated album {album_id}: {sorted(changed)}")
        return list(updates)

    def replace_tracks(self, user_id, album_id, tracks: list) -> dict:
        if not self.repository.update_album(user_id, album_id, {'tracks': tracks}):
            raise NotFoundError("Album not found")
        return self.get_album(user_id, album_id)

    def delete_album(self, user_id, album_id) -> None:
        if not self.repository.get_album(user_id, album_id):
            raise NotFoundError("Album not found")

        if not self.repository.delete_album(user_id, album_id):
            raise NotFoundError("Album not found or already removed")

        logger.info(f"User {user_id} removed album {album_id}")
