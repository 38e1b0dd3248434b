"""
User persistence

All lookups by email are case-insensitive; emails are stored lower-cased.
Rows are returned as dicts (psycopg dict_row).
"""

import logging
from datetime import datetime
from typing import Optional

from crates_backend.db_utils import get_db_connection
from crates_backend.utils.helpers import parse_uuid

logger = logging.getLogger(__name__)

USER_COLUMNS = """
    id, email, password_hash, name, is_verified,
    verification_token, reset_token, reset_token_expires,
    created_at, updated_at
"""


class PostgresUserRepository:
    """Reads and writes the users table"""

    def get_by_email(self, email: str) -> Optional[dict]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    SELECT {USER_COLUMNS}
                    FROM users
                    WHERE lower(email) = lower(%s)
                """, (email,))
                return cur.fetchone()

    def get_by_id(self, user_id) -> Optional[dict]:
        user_id = parse_uuid(user_id)
        if user_id is None:
            return None

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    SELECT {USER_COLUMNS}
                    FROM users
                    WHERE id = %s
                """, (user_id,))
                return cur.fetchone()

    def create(self, email: str, password_hash: str, name: str,
               verification_token: str) -> dict:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"""
                    INSERT INTO users (email, password_hash, name, verification_token)
                    VALUES (lower(%s), %s, %s, %s)
                    RETURNING {USER_COLUMNS}
                """, (email, password_hash, name, verification_token))
                user = cur.fetchone()

        logger.info(f"User created: {user['id']}")
        return user

    def mark_verified(self, user_id) -> None:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE users
                    SET is_verified = true,
                        verification_token = NULL,
                        updated_at = NOW()
                    WHERE id = %s
                """, (user_id,))

    def set_verification_token(self, user_id, token: str) -> None:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE users
                    SET verification_token = %s,
                        updated_at = NOW()
                    WHERE id = %s
                """, (token, user_id))

    def set_reset_token(self, user_id, token: str, expires_at: datetime) -> None:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE users
                    SET reset_token = %s,
                        reset_token_expires = %s,
                        updated_at = NOW()
                    WHERE id = %s
                """, (token, expires_at, user_id))

    def consume_reset_token(self, user_id, token: str, password_hash: str) -> bool:
        """
        Set a new password and clear the reset token in one statement

        Returns:
            False if the token was already consumed or has expired
        """
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE users
                    SET password_hash = %s,
                        reset_token = NULL,
                        reset_token_expires = NULL,
                        updated_at = NOW()
                    WHERE id = %s
                      AND reset_token = %s
                      AND reset_token_expires > NOW()
                    RETURNING id
                """, (password_hash, user_id, token))
                return cur.fetchone() is not None
