"""
PostgreSQL connector — talks to PG via psycopg2.

Escaping goes through psycopg2's QuotedString prepared against the live
connection, which uses libpq's PQescapeStringConn and the connection's
client encoding. Health is a SELECT 1 round trip.

Password is handed to libpq as a keyword, never put into a DSN string.
"""

from __future__ import annotations

import psycopg2
from psycopg2 import extensions
from psycopg2.extras import RealDictCursor

from .base import Connector


class PostgresConnector(Connector):
    """PostgreSQL via psycopg2."""

    driver_errors = (psycopg2.Error,)

    def _connect(self):
        cfg = self.config
        kwargs = {
            "host": cfg.host,
            "port": cfg.effective_port(),
            "dbname": cfg.database,
            "connect_timeout": cfg.connect_timeout,
        }
        if cfg.user:
            kwargs["user"] = cfg.user
        if cfg.password:
            kwargs["password"] = cfg.password
        conn = psycopg2.connect(**kwargs)
        # A lookup is one SELECT; never leave a transaction open on the handle
        conn.autocommit = True
        return conn

    def _cursor(self):
        return self._conn.cursor(cursor_factory=RealDictCursor)

    # ── Interface ─────────────────────────────────────────────

    def healthy(self):
        if self._conn is None or self._conn.closed:
            return False
        try:
            with self._conn.cursor() as cur:
                cur.execute("SELECT 1")
                return cur.fetchone()[0] == 1
        except psycopg2.Error:
            return False

    def literal(self, value):
        if self._conn is None:
            raise self._not_connected()
        quoted = extensions.QuotedString(value)
        quoted.prepare(self._conn)
        encoding = extensions.encodings.get(self._conn.encoding, "utf-8")
        return quoted.getquoted().decode(encoding)

    def is_transient(self, exc):
        """Connection-class errors that left the handle closed."""
        if not isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
            return False
        return self._conn is None or bool(self._conn.closed)

    def error_message(self, exc):
        return (getattr(exc, "pgerror", None) or str(exc)).strip() or exc.__class__.__name__

    def _not_connected(self):
        return psycopg2.InterfaceError("connection already closed")
