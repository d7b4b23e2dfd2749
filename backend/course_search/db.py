# db.py
import logging

import psycopg2

from . import config
from .errors import SearchUnavailable

log = logging.getLogger(__name__)


def get_db_conn():
    """
    Open a new connection for one request.

    Uses DATABASE_URL when set, otherwise libpq falls back to the standard
    PGHOST / PGPORT / PGDATABASE / PGUSER / PGPASSWORD variables. The session
    is read-only REPEATABLE READ so every query in a request sees the same
    snapshot.
    """
    options = f"-c statement_timeout={config.DB_STATEMENT_TIMEOUT_MS}"
    try:
        if config.DATABASE_URL:
            conn = psycopg2.connect(config.DATABASE_URL, options=options)
        else:
            conn = psycopg2.connect(options=options)
        conn.set_session(isolation_level="REPEATABLE READ", readonly=True)
    except psycopg2.Error as exc:
        log.warning("database connection failed: %s", exc)
        raise SearchUnavailable() from exc
    return conn
