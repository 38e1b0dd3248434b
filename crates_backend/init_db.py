#!/usr/bin/env python3
"""
Create the Crates tables and indexes

Safe to run repeatedly; every statement in schema.sql is IF NOT EXISTS.

Usage:
    python -m crates_backend.init_db [--database-url URL] [--schema PATH]
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from crates_backend import db_utils
from crates_backend.config import Settings, configure_logging

logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Apply the Crates database schema')
    parser.add_argument('--database-url', help='Overrides DATABASE_URL / DB_* settings')
    parser.add_argument('--schema', type=Path, default=db_utils.SCHEMA_PATH,
                        help='Schema file to apply (default: bundled schema.sql)')
    args = parser.parse_args(argv)

    load_dotenv()
    configure_logging()

    database_url = args.database_url
    if not database_url:
        try:
            database_url = Settings.from_env().database_url
        except ValueError as e:
            logger.error(str(e))
            return 1

    if not database_url:
        logger.error("No database configured; set DATABASE_URL or DB_HOST")
        return 1

    db_utils.configure(database_url)

    try:
        db_utils.init_schema(args.schema)
    except Exception as e:
        logger.error(f"Schema initialization failed: {e}", exc_info=True)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
