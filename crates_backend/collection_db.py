"""
Collection and album persistence

Every statement filters on user_id, so a caller can never read or modify
another user's collections. JSONB columns (tracks, genre, style, format)
are written with psycopg's Jsonb adapter.
"""

import logging
from typing import Optional

import psycopg
from psycopg.types.json import Jsonb

from crates_backend.db_utils import get_db_connection
from crates_backend.errors import DuplicateAlbumError
from crates_backend.utils.helpers import parse_uuid

logger = logging.getLogger(__name__)

ALBUM_COLUMNS = [
    'discogs_id', 'title', 'artist', 'year', 'thumb', 'genre', 'style',
    'country', 'format', 'label', 'catno', 'barcode', 'master_id',
    'status', 'notes', 'tracks', 'added_at',
]

JSON_COLUMNS = {'genre', 'style', 'format', 'tracks'}

ALBUM_SELECT = """
    id, collection_id, user_id, discogs_id, title, artist, year, thumb,
    genre, style, country, format, label, catno, barcode, master_id,
    status, notes, tracks, added_at
"""


def _adapt(column, value):
    if column in JSON_COLUMNS and value is not None:
        return Jsonb(value)
    return value


class PostgresCollectionRepository:
    """Reads and writes the collections and albums tables"""

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def list_collections(self, user_id) -> list:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT id, user_id, name, description, created_at, updated_at
                    FROM collections
                    WHERE user_id = %s
                    ORDER BY created_at
                """, (user_id,))
                collections = cur.fetchall()

                cur.execute(f"""
                    SELECT {ALBUM_SELECT}
                    FROM albums
                    WHERE user_id = %s
                    ORDER BY position
                """, (user_id,))
                albums = cur.fetchall()

        by_collection = {}
        for album in albums:
            by_collection.setdefault(album['collection_id'], []).append(album)

        for collection in collections:
            collection['records'] = by_collection.get(collection['id'], [])

        return collections

    def get_collection(self, user_id, collection_id) -> Optional[dict]:
        collection_id = parse_uuid(collection_id)
        if collection_id is None:
            return None

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT id, user_id, name, description, created_at, updated_at
                    FROM collections
                    WHERE id = %s AND user_id = %s
                """, (collection_id, user_id))
                collection = cur.fetchone()

                if not collection:
                    return None

                cur.execute(f"""
                    SELECT {ALBUM_SELECT}
                    FROM albums
                    WHERE collection_id = %s AND user_id = %s
                    ORDER BY position
                """, (collection_id, user_id))
                collection['records'] = cur.fetchall()

        return collection

    def find_collection_by_name(self, user_id, name: str) -> Optional[dict]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT id, user_id, name, description, created_at, updated_at
                    FROM collections
                    WHERE user_id = %s AND name = %s
                    ORDER BY created_at
                    LIMIT 1
                """, (user_id, name))
                return cur.fetchone()

    def create_collection(self, user_id, name: str, description: Optional[str]) -> dict:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO collections (user_id, name, description)
                    VALUES (%s, %s, %s)
                    RETURNING id, user_id, name, description, created_at, updated_at
                """, (user_id, name, description))
                collection = cur.fetchone()

        collection['records'] = []
        return collection

    def update_collection(self, user_id, collection_id, fields: dict) -> bool:
        collection_id = parse_uuid(collection_id)
        if collection_id is None:
            return False

        assignments = ', '.join(f"{column} = %s" for column in fields)
        params = list(fields.values()) + [collection_id, user_id]

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    UPDATE collections
                    SET {assignments}{', ' if assignments else ''}updated_at = NOW()
                    WHERE id = %s AND user_id = %s
                    RETURNING id
                """, params)
                return cur.fetchone() is not None

    def delete_collection(self, user_id, collection_id) -> bool:
        collection_id = parse_uuid(collection_id)
        if collection_id is None:
            return False

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    DELETE FROM collections
                    WHERE id = %s AND user_id = %s
                    RETURNING id
                """, (collection_id, user_id))
                return cur.fetchone() is not None

    # ------------------------------------------------------------------
    # Albums
    # ------------------------------------------------------------------

    def album_exists(self, user_id, discogs_id) -> bool:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT 1 FROM albums
                    WHERE user_id = %s AND discogs_id = %s
                """, (user_id, discogs_id))
                return cur.fetchone() is not None

    def insert_album(self, user_id, collection_id, album: dict) -> dict:
        """
        Append an album to a collection

        Raises:
            DuplicateAlbumError: If the user already holds this discogs_id
        """
        columns = [c for c in ALBUM_COLUMNS if album.get(c) is not None]
        placeholders = ', '.join(['%s'] * (len(columns) + 2))
        params = [collection_id, user_id] + [_adapt(c, album[c]) for c in columns]

        try:
            with get_db_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"""
                        INSERT INTO albums (collection_id, user_id, {', '.join(columns)})
                        VALUES ({placeholders})
                        RETURNING {ALBUM_SELECT}
                    """, params)
                    row = cur.fetchone()

                    cur.execute("""
                        UPDATE collections SET updated_at = NOW()
                        WHERE id = %s AND user_id = %s
                    """, (collection_id, user_id))
        except psycopg.errors.UniqueViolation as e:
            raise DuplicateAlbumError(str(e)) from e

        return row

    def get_album(self, user_id, album_id) -> Optional[dict]:
        album_id = parse_uuid(album_id)
        if album_id is None:
            return None

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    SELECT {ALBUM_SELECT}
                    FROM albums
                    WHERE id = %s AND user_id = %s
                """, (album_id, user_id))
                return cur.fetchone()

    def update_album(self, user_id, album_id, fields: dict) -> bool:
        album_id = parse_uuid(album_id)
        if album_id is None or not fields:
            return False

        assignments = ', '.join(f"{column} = %s" for column in fields)
        params = [_adapt(c, v) for c, v in fields.items()] + [album_id, user_id]

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    UPDATE albums
                    SET {assignments}
                    WHERE id = %s AND user_id = %s
                    RETURNING collection_id
                """, params)
                row = cur.fetchone()

                if row:
                    cur.execute("""
                        UPDATE collections SET updated_at = NOW()
                        WHERE id = %s AND user_id = %s
                    """, (row['collection_id'], user_id))

        return row is not None

    def delete_album(self, user_id, album_id) -> bool:
        album_id = parse_uuid(album_id)
        if album_id is None:
            return False

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    DELETE FROM albums
                    WHERE id = %s AND user_id = %s
                    RETURNING collection_id
                """, (album_id, user_id))
                row = cur.fetchone()

                if row:
                    cur.execute("""
                        UPDATE collections SET updated_at = NOW()
                        WHERE id = %s AND user_id = %s
                    """, (row['collection_id'], user_id))

        return row is not None
