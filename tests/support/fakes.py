"""In-memory stand-ins for the Postgres repositories and upstream HTTP services."""

import copy
import uuid
from datetime import datetime, timezone
from typing import Optional

from crates_backend.collection_db import ALBUM_COLUMNS
from crates_backend.errors import DuplicateAlbumError
from crates_backend.utils.helpers import parse_uuid


def _now():
    return datetime.now(timezone.utc)


class InMemoryUserRepository:
    """Mirrors PostgresUserRepository, returning copies of row dicts."""

    def __init__(self):
        self.rows = {}

    def get_by_email(self, email: str) -> Optional[dict]:
        for row in self.rows.values():
            if row['email'] == (email or '').lower():
                return copy.deepcopy(row)
        return None

    def get_by_id(self, user_id) -> Optional[dict]:
        row = self.rows.get(parse_uuid(user_id))
        return copy.deepcopy(row) if row else None

    def create(self, email, password_hash, name, verification_token) -> dict:
        user_id = str(uuid.uuid4())
        self.rows[user_id] = {
            'id': user_id,
            'email': email.lower(),
            'password_hash': password_hash,
            'name': name,
            'is_verified': False,
            'verification_token': verification_token,
            'reset_token': None,
            'reset_token_expires': None,
            'created_at': _now(),
            'updated_at': _now(),
        }
        return copy.deepcopy(self.rows[user_id])

    def mark_verified(self, user_id) -> None:
        row = self.rows[str(user_id)]
        row['is_verified'] = True
        row['verification_token'] = None

    def set_verification_token(self, user_id, token) -> None:
        self.rows[str(user_id)]['verification_token'] = token

    def set_reset_token(self, user_id, token, expires_at) -> None:
        row = self.rows[str(user_id)]
        row['reset_token'] = token
        row['reset_token_expires'] = expires_at

    def consume_reset_token(self, user_id, token, password_hash) -> bool:
        row = self.rows.get(str(user_id))
        if not row or row['reset_token'] != token:
            return False
        if row['reset_token_expires'] is None or row['reset_token_expires'] <= _now():
            return False
        row['password_hash'] = password_hash
        row['reset_token'] = None
        row['reset_token_expires'] = None
        return True


class InMemoryCollectionRepository:
    """Mirrors PostgresCollectionRepository, including the (user, discogs_id) unique index."""

    def __init__(self):
        self.collections = {}
        self.albums = {}

    def _records(self, user_id, collection_id):
        return [
            copy.deepcopy(a) for a in self.albums.values()
            if a['user_id'] == user_id and a['collection_id'] == collection_id
        ]

    def _collection(self, row):
        collection = copy.deepcopy(row)
        collection['records'] = self._records(row['user_id'], row['id'])
        return collection

    def list_collections(self, user_id) -> list:
        return [self._collection(c) for c in self.collections.values() if c['user_id'] == user_id]

    def get_collection(self, user_id, collection_id) -> Optional[dict]:
        row = self.collections.get(parse_uuid(collection_id))
        if not row or row['user_id'] != user_id:
            return None
        return self._collection(row)

    def find_collection_by_name(self, user_id, name) -> Optional[dict]:
        for row in self.collections.values():
            if row['user_id'] == user_id and row['name'] == name:
                return copy.deepcopy(row)
        return None

    def create_collection(self, user_id, name, description) -> dict:
        collection_id = str(uuid.uuid4())
        self.collections[collection_id] = {
            'id': collection_id,
            'user_id': user_id,
            'name': name,
            'description': description,
            'created_at': _now(),
            'updated_at': _now(),
        }
        return dict(copy.deepcopy(self.collections[collection_id]), records=[])

    def update_collection(self, user_id, collection_id, fields) -> bool:
        row = self.collections.get(parse_uuid(collection_id))
        if not row or row['user_id'] != user_id:
            return False
        row.update(fields)
        row['updated_at'] = _now()
        return True

    def delete_collection(self, user_id, collection_id) -> bool:
        collection_id = parse_uuid(collection_id)
        row = self.collections.get(collection_id)
        if not row or row['user_id'] != user_id:
            return False
        del self.collections[collection_id]
        for album_id in [k for k, a in self.albums.items() if a['collection_id'] == collection_id]:
            del self.albums[album_id]
        return True

    def album_exists(self, user_id, discogs_id) -> bool:
        return self._has_album(user_id, discogs_id)

    def _has_album(self, user_id, discogs_id) -> bool:
        return any(
            a['user_id'] == user_id and a['discogs_id'] == discogs_id
            for a in self.albums.values()
        )

    def insert_album(self, user_id, collection_id, album) -> dict:
        if self._has_album(user_id, album['discogs_id']):
            raise DuplicateAlbumError("duplicate key value violates unique constraint")

        album_id = str(uuid.uuid4())
        row = {column: copy.deepcopy(album.get(column)) for column in ALBUM_COLUMNS}
        row.update({'id': album_id, 'collection_id': collection_id, 'user_id': user_id})
        self.albums[album_id] = row
        return copy.deepcopy(row)

    def get_album(self, user_id, album_id) -> Optional[dict]:
        row = self.albums.get(parse_uuid(album_id))
        if not row or row['user_id'] != user_id:
            return None
        return copy.deepcopy(row)

    def update_album(self, user_id, album_id, fields) -> bool:
        row = self.albums.get(parse_uuid(album_id))
        if not row or row['user_id'] != user_id or not fields:
            return False
        row.update(copy.deepcopy(fields))
        return True

    def delete_album(self, user_id, album_id) -> bool:
        album_id = parse_uuid(album_id)
        row = self.albums.get(album_id)
        if not row or row['user_id'] != user_id:
            return False
        del self.albums[album_id]
        return True


class FakeDatabase:
    def __init__(self, healthy=True):
        self.healthy = healthy

    def ping(self):
        if not self.healthy:
            raise RuntimeError("connection refused")
        return {'version': 'PostgreSQL 16.0 (fake)'}

    def get_pool_stats(self):
        return None


class FakeEmailService:
    """Records every message instead of sending it."""

    def __init__(self, configured=False, succeed=True):
        self.configured = configured
        self.succeed = succeed
        self.verification_emails = []
        self.reset_emails = []

    def send_verification_email(self, email, token):
        self.verification_emails.append((email, token))
        return self.succeed

    def send_password_reset_email(self, email, token):
        self.reset_emails.append((email, token))
        return self.succeed

    def last_verification_token(self, email):
        return [t for e, t in self.verification_emails if e == email][-1]

    def last_reset_token(self, email):
        return [t for e, t in self.reset_emails if e == email][-1]


class FakeSpotify:
    """
    Spotify stand-in for enrichment.

    catalog maps a track title to (spotify_id, audio_features). Titles in
    failing raise from find_track; titles in failing_features raise from
    get_audio_features.
    """

    def __init__(self, catalog=None, failing=(), on_lookup=None, failing_features=()):
        self.catalog = catalog or {}
        self.failing = set(failing)
        self.failing_features = set(failing_features)
        self.on_lookup = on_lookup
        self.lookups = []

    def find_track(self, title, artist, access_token=None):
        self.lookups.append((title, artist, access_token))
        if self.on_lookup:
            self.on_lookup(title)
        if title in self.failing:
            raise RuntimeError(f"Spotify search failed for {title}")
        if title not in self.catalog:
            return None
        spotify_id, _ = self.catalog[title]
        return {'id': spotify_id, 'name': title}

    def get_audio_features(self, track_id, access_token=None):
        for title, (spotify_id, features) in self.catalog.items():
            if spotify_id == track_id:
                if title in self.failing_features:
                    raise RuntimeError(f"Audio features unavailable for {track_id}")
                return features
        return None


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text='', headers=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = headers or {}

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Replays queued responses and records each call as (method, url, kwargs)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def queue(self, response):
        self.responses.append(response)

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self.request('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self.request('POST', url, **kwargs)
