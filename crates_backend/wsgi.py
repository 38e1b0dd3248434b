"""
WSGI entry point for gunicorn

    gunicorn -c gunicorn.conf.py crates_backend.wsgi:app
"""

import atexit
import logging

from dotenv import load_dotenv

from crates_backend import db_utils
from crates_backend.app import create_app
from crates_backend.config import configure_logging

load_dotenv()
configure_logging()
logger = logging.getLogger(__name__)

app = create_app()


def cleanup_connections():
    """Close the connection pool on shutdown"""
    logger.info("Shutting down connection pool...")
    db_utils.close_connection_pool()
    logger.info("Connection pool closed")


atexit.register(cleanup_connections)
