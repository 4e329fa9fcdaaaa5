"""
Data store access

- Storefront database: Supabase-hosted Postgres reached with psycopg2 and raw SQL.
  Every repository call opens its own connection and closes it in `finally`.
- Analytics: a separate Supabase project reached through the supabase client.

Author: Vadiler
Updated: 2025-11-02
"""
import time
import logging
from typing import Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from supabase import create_client, Client

from .config import settings

logger = logging.getLogger(__name__)

# Seconds psycopg2 waits for the server before giving up
CONNECTION_TIMEOUT = 10

# Supabase's pooler drops idle SSL sessions; these are worth a retry
TRANSIENT_ERROR_HINTS = (
    "SSL connection has been closed unexpectedly",
    "server closed the connection unexpectedly",
    "could not connect to server",
    "timeout expired",
)


class DatabaseNotConfiguredError(RuntimeError):
    """DATABASE_URL is empty"""


def _connect(cursor_factory=None):
    if not settings.DATABASE_URL:
        raise DatabaseNotConfiguredError("DATABASE_URL not configured")

    options = {"connect_timeout": CONNECTION_TIMEOUT}
    if cursor_factory is not None:
        options["cursor_factory"] = cursor_factory
    return psycopg2.connect(settings.DATABASE_URL, **options)


def get_db_connection():
    """Connection whose cursors return tuples"""
    return _connect()


def get_db_connection_dict():
    """
    Connection whose cursors return dict rows (RealDictCursor)

    This is what repositories use; rows map straight onto the pydantic
    domain models.

        conn = get_db_connection_dict()
        cursor = conn.cursor()
        try:
            cursor.execute("SELECT * FROM orders WHERE id = %s", (order_id,))
            row = cursor.fetchone()
        finally:
            cursor.close()
            conn.close()
    """
    return _connect(RealDictCursor)


def _is_transient(error: Exception) -> bool:
    message = str(error)
    return any(hint in message for hint in TRANSIENT_ERROR_HINTS)


def _connect_with_retry(max_retries: int, retry_delay: float, cursor_factory=None):
    """
    Connect and ping, retrying OperationalError with exponential backoff
    (retry_delay, 2x, 4x, ...). The last error is re-raised.
    """
    for attempt in range(1, max_retries + 1):
        try:
            conn = _connect(cursor_factory)
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()
            if attempt > 1:
                logger.info(f"Database connection recovered on attempt {attempt}")
            return conn
        except psycopg2.OperationalError as e:
            kind = "Transient" if _is_transient(e) else "Connection"
            logger.warning(f"{kind} database error (attempt {attempt}/{max_retries}): {e}")
            if attempt == max_retries:
                logger.error(f"Giving up on the database after {max_retries} attempts")
                raise
            delay = retry_delay * (2 ** (attempt - 1))
            time.sleep(delay)


def get_db_connection_with_retry(max_retries=3, retry_delay=1.0):
    """
    Tuple-cursor connection that survives a dropped SSL session

    Used by /health and the integration checks.

    Raises:
        psycopg2.OperationalError: every attempt failed
    """
    return _connect_with_retry(max_retries, retry_delay)


def get_db_connection_dict_with_retry(max_retries=3, retry_delay=1.0):
    return _connect_with_retry(max_retries, retry_delay, cursor_factory=RealDictCursor)


# ============================================================================
# Analytics (separate Supabase project)
# ============================================================================

_analytics_client: Optional[Client] = None


def get_analytics_client() -> Optional[Client]:
    """
    Lazily build the Supabase client for the analytics project.

    None when analytics is switched off or unconfigured; the analytics
    repository then reports itself disabled instead of failing requests.
    """
    global _analytics_client

    if not settings.ANALYTICS_ENABLED:
        return None
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        return None

    if _analytics_client is None:
        _analytics_client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
    return _analytics_client
