# gunicorn.conf.py
# Gunicorn configuration file

import logging
import os

bind = f"0.0.0.0:{os.getenv('PORT', '5000')}"

# Logging
accesslog = '-'  # Log to stdout
errorlog = '-'   # Log to stderr
loglevel = 'info'

# Enrichment runs inside the request, so allow slow albums to finish
workers = int(os.getenv('WEB_CONCURRENCY', '2'))
worker_class = 'gthread'
threads = 4
timeout = 120

# Server mechanics
daemon = False
pidfile = None
umask = 0
user = None
group = None
tmp_upload_dir = None


# Hooks
def post_worker_init(worker):
    """
    Called after a worker has been forked and initialized.
    Opens the database pool so the first request does not pay for it.
    """
    logger = logging.getLogger(__name__)
    logger.info(f"=== Post-worker init hook called for worker PID {os.getpid()} ===")

    try:
        from crates_backend import db_utils
        if db_utils.CONNECTION_STRING and not db_utils.init_connection_pool():
            logger.warning(f"Connection pool not ready in worker PID {os.getpid()}")
    except Exception as e:
        logger.error(f"Error initializing connection pool in gunicorn worker: {e}", exc_info=True)


def worker_exit(server, worker):
    """
    Called when a worker exits.
    """
    logger = logging.getLogger(__name__)
    logger.info(f"Worker {worker.pid} exiting - closing connection pool")

    try:
        from crates_backend import db_utils
        db_utils.close_connection_pool()
    except Exception as e:
        logger.error(f"Error closing connection pool: {e}")
