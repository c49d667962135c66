"""
Database-backed public key resolver.

One lookup walks a fixed path and always ends with the connection closed:

    ensure_connected  → connect, health-check, at most one reconnect
    build_query       → escape username + fingerprint on the live handle
    execute           → run it, retry once if the server went away
    map_results       → rows → KeyRecords, cursor released
    shutdown          → no connection survives the lookup

Failures on the way are logged and turned into "no keys" (fail closed):
a database outage must look like a missing key, never like a key without
restrictions. Only over-long input reaches the caller as an exception.

A KeyResolver holds a single connector handle, so lookups on the same
resolver are serialised with a lock. Separate resolvers do not share
anything.
"""

from __future__ import annotations

import enum
import logging
import threading
from collections import OrderedDict
from contextlib import closing

from .config import ConnectionConfig
from .connectors import Connector, connector_for
from .errors import LookupInputError, QueryTooLongError
from .fingerprint import resolve_fingerprint
from .records import KeyRecord, KeyRecordList, LookupResult

LOG = logging.getLogger(__name__)

KEY_QUERY_TEMPLATE = (
    "SELECT public_keys.key, public_keys.options FROM public_keys "
    "WHERE username={username} AND fingerprint={fingerprint}"
)

#: Largest rendered query, in UTF-8 bytes.
MAX_QUERY_LENGTH = 1024

#: Longest username or fingerprint accepted, in characters.
MAX_INPUT_LENGTH = 256

_ENGINE_NAMES = {"mysql": "MySQL", "postgres": "PostgreSQL"}


class LookupState(enum.Enum):
    NO_CONNECTION = "no_connection"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    EXECUTING = "executing"
    RESULTS_MAPPED = "results_mapped"
    EXEC_FAILED = "exec_failed"
    TORN_DOWN = "torn_down"


class KeyResolver:
    """
    Looks up public keys by username and fingerprint.

    Usage:
        resolver = KeyResolver(from_url("postgresql://svc:x@db1/keys"))
        result = resolver.lookup("aa:bb:cc", "alice")     # LookupResult
        keys = resolver.search("aa:bb:cc", "alice")       # KeyRecordList
    """

    def __init__(self, config: ConnectionConfig, connector: Connector | None = None):
        self.config = config
        self.connector = connector or connector_for(config)
        self.state = LookupState.NO_CONNECTION
        self._lock = threading.Lock()
        self._engine = _ENGINE_NAMES.get(config.backend, config.backend)

    # ── Connection manager ────────────────────────────────────

    def init(self) -> None:
        """
        (Re)open the connection.

        Does not promise a working connection: a failure is logged and
        the caller checks health before using the handle.
        """
        LOG.debug("[DBKeys] Initialising %s connection", self._engine)
        self.shutdown()
        self.state = LookupState.CONNECTING
        try:
            self.connector.open()
        except self.connector.driver_errors as exc:
            LOG.info(
                "[DBKeys] Failed to connect to %s server %s: %s",
                self._engine, self.config.host, self.connector.error_message(exc),
            )

    def ensure_connected(self) -> bool:
        """Make sure a healthy handle exists. Reconnects at most once."""
        if not self.connector.connected:
            self.init()

        if not self.connector.healthy():
            self.init()
            if not self.connector.healthy():
                LOG.info(
                    "[DBKeys] Connection to the %s server %s failed",
                    self._engine, self.config.host,
                )
                self.state = LookupState.FAILED
                self.shutdown()
                return False

        self.state = LookupState.CONNECTED
        return True

    def shutdown(self) -> None:
        """Close the connection if there is one."""
        if self.connector.connected:
            LOG.debug("[DBKeys] Closing %s connection", self._engine)
            self.connector.close()

    # ── Query builder ─────────────────────────────────────────

    def build_query(self, fingerprint: str, username: str) -> str:
        """
        Render the key query with both values escaped by the live handle.

        Raises QueryTooLongError instead of ever truncating the SQL.
        """
        query = KEY_QUERY_TEMPLATE.format(
            username=self.connector.literal(username),
            fingerprint=self.connector.literal(fingerprint),
        )
        length = len(query.encode("utf-8"))
        if length > MAX_QUERY_LENGTH:
            raise QueryTooLongError(length, MAX_QUERY_LENGTH)
        return query

    # ── Query executor ────────────────────────────────────────

    def execute(self, query: str):
        """
        Run query and return its cursor, or None on failure.

        A connection-loss error is retried once with the same query on the
        same handle. Any failure tears the connection down.
        """
        self.state = LookupState.EXECUTING
        try:
            cursor = self.connector.execute(query)
        except self.connector.driver_errors as exc:
            if not self.connector.is_transient(exc):
                return self._execution_failed(query, exc)
            LOG.debug(
                "[DBKeys] Lost the %s server during query, retrying once: %s",
                self._engine, self.connector.error_message(exc),
            )
            try:
                cursor = self.connector.execute(query)
            except self.connector.driver_errors as exc:
                return self._execution_failed(query, exc)

        if cursor.description is None:
            cursor.close()
            LOG.error("[DBKeys] Failed to retrieve result set for query '%s'", query)
            self.state = LookupState.EXEC_FAILED
            self.shutdown()
            return None
        return cursor

    def _execution_failed(self, query, exc):
        LOG.error(
            "[DBKeys] Failed to execute query '%s': %s",
            query, self.connector.error_message(exc),
        )
        self.state = LookupState.EXEC_FAILED
        self.shutdown()
        return None

    # ── Result mapper ─────────────────────────────────────────

    def map_results(self, cursor) -> tuple[KeyRecord, ...]:
        """
        Copy rows into KeyRecords in result order, releasing the cursor.

        A row without key material would read as the end-of-list sentinel,
        so it is logged and left out.
        """
        with closing(cursor):
            rows = cursor.fetchall()
        LOG.debug("[DBKeys] Query returned %d results", len(rows))
        records = []
        for row in rows:
            key = _text(row["key"])
            if not key:
                LOG.error("[DBKeys] Skipping public_keys row without key material")
                continue
            records.append(KeyRecord(key=key, options=_text(row["options"])))
        return tuple(records)

    # ── Lookup ────────────────────────────────────────────────

    def lookup(self, fingerprint_source, username: str) -> LookupResult:
        """
        Find the keys stored for username with the given fingerprint.

        fingerprint_source is anything dbkeys.fingerprint.resolve_fingerprint
        understands. Returns LookupResult.failure() when the database could
        not be asked; raises LookupInputError / QueryTooLongError for
        pathological input.
        """
        fingerprint = resolve_fingerprint(fingerprint_source)
        _check_input("username", username)
        _check_input("fingerprint", fingerprint)

        with self._lock:
            try:
                return self._lookup(fingerprint, username)
            finally:
                self.shutdown()
                self.state = LookupState.TORN_DOWN

    def search(self, fingerprint_source, username: str) -> KeyRecordList:
        """Fail-closed lookup: misses and failures both give the bare sentinel."""
        return self.lookup(fingerprint_source, username).as_key_list()

    def _lookup(self, fingerprint, username):
        if not self.ensure_connected():
            return LookupResult.failure()

        errors = self.connector.driver_errors
        try:
            query = self.build_query(fingerprint, username)
        except QueryTooLongError as exc:
            LOG.critical("[DBKeys] Refusing to run key query: %s", exc)
            raise
        except errors as exc:
            LOG.error(
                "[DBKeys] Failed to escape lookup values: %s",
                self.connector.error_message(exc),
            )
            self.state = LookupState.EXEC_FAILED
            return LookupResult.failure()

        LOG.debug("[DBKeys] Going to execute query: '%s'", query)
        cursor = self.execute(query)
        if cursor is None:
            return LookupResult.failure()

        try:
            records = self.map_results(cursor)
        except errors as exc:
            LOG.error(
                "[DBKeys] Failed to retrieve result set: %s",
                self.connector.error_message(exc),
            )
            self.state = LookupState.EXEC_FAILED
            return LookupResult.failure()

        self.state = LookupState.RESULTS_MAPPED
        return LookupResult(records=records)


def _check_input(name, value):
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string, not {type(value).__name__}")
    if len(value) > MAX_INPUT_LENGTH:
        raise LookupInputError(
            f"{name} is {len(value)} characters, limit is {MAX_INPUT_LENGTH}"
        )


def _text(value):
    # mysql-connector hands back bytearray for binary-collated columns
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


# ── Process-wide entry point ──────────────────────────────────

#: Resolvers kept for search(); the least recently used one is dropped first.
MAX_RESOLVERS = 16

_RESOLVERS: OrderedDict[ConnectionConfig, KeyResolver] = OrderedDict()
_RESOLVERS_LOCK = threading.Lock()


def resolver_for(config: ConnectionConfig) -> KeyResolver:
    """The shared resolver for config, created on first use."""
    with _RESOLVERS_LOCK:
        resolver = _RESOLVERS.get(config)
        if resolver is None:
            resolver = _RESOLVERS[config] = KeyResolver(config)
            while len(_RESOLVERS) > MAX_RESOLVERS:
                _RESOLVERS.popitem(last=False)
        else:
            _RESOLVERS.move_to_end(config)
        return resolver


def search(config: ConnectionConfig, fingerprint_source, username: str) -> KeyRecordList:
    """Look up keys for username/fingerprint; see KeyResolver.search."""
    return resolver_for(config).search(fingerprint_source, username)
