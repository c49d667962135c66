"""
Abstract key-database connector interface.

Every connector implements the same surface:

    open()            → None         open the connection (may leave it unusable)
    healthy()         → bool         engine-native liveness round trip
    literal(value)    → str          escaped, quoted SQL string literal
    execute(sql)      → cursor       run a query, hand back the result set
    is_transient(exc) → bool         connection-loss class of error?
    close()           → None         drop the connection, safe to repeat

Connectors handle connection, escaping, execution and error classes.
They know nothing about keys, sentinels or retries; that stays in
dbkeys.resolver.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..config import ConnectionConfig


class Connector(ABC):
    """
    Minimal single-handle database connector.

    A connector owns at most one live connection. open() replaces it,
    close() drops it. Nothing here is thread-safe; the resolver serialises
    access.
    """

    #: Driver exception classes a lookup absorbs. Set by subclasses.
    driver_errors: tuple[type[BaseException], ...] = ()

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._conn = None

    # ── Required ──────────────────────────────────────────────

    @abstractmethod
    def _connect(self):
        """
        Open and return a new driver connection.

        Raises a driver error when the server cannot be reached or
        refuses the credentials.
        """
        ...

    @abstractmethod
    def healthy(self) -> bool:
        """
        Test the live connection with a cheap round trip.

        Must not raise — returns False on any failure or without a handle.
        """
        ...

    @abstractmethod
    def literal(self, value: str) -> str:
        """
        Escape value with the connection's own routine and quote it.

        Needs a live connection: charset and SQL mode decide how
        quotes and backslashes are escaped.
        """
        ...

    @abstractmethod
    def is_transient(self, exc: BaseException) -> bool:
        """True when exc means the server went away mid-query."""
        ...

    # ── Shared plumbing ───────────────────────────────────────

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Replace any current handle with a freshly opened connection."""
        self.close()
        self._conn = self._connect()

    def execute(self, sql: str):
        """
        Run sql and return the cursor holding its result set.

        The caller closes the cursor. Driver errors propagate.
        """
        if self._conn is None:
            raise self._not_connected()
        cursor = self._cursor()
        try:
            cursor.execute(sql)
        except BaseException:
            cursor.close()
            raise
        return cursor

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            try:
                conn.close()
            except self.driver_errors:
                # Already gone; nothing left to release.
                pass

    def _cursor(self):
        return self._conn.cursor()

    def _not_connected(self) -> BaseException:
        """Driver-flavoured error for use of a missing handle."""
        return RuntimeError("not connected")

    def error_message(self, exc: BaseException) -> str:
        """Human-readable driver error, for logs."""
        return str(exc) or exc.__class__.__name__

    # ── Repr ──────────────────────────────────────────────────

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.config.user or ''}@{self.config.describe()}>"
