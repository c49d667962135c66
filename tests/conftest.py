"""Fault-injectable connector shared by the resolver tests."""

from __future__ import annotations

from typing import Any

import pytest

from dbkeys.config import ConnectionConfig
from dbkeys.connectors.base import Connector


class FakeDriverError(Exception):
    def __init__(self, message: str = "boom", *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class FakeCursor:
    def __init__(self, owner: "FakeConnector") -> None:
        self._owner = owner
        self.description: tuple[str, ...] | None = None
        self.closed = False
        self._rows: list[dict[str, Any]] = []

    def execute(self, sql: str) -> None:
        self._owner.queries.append(sql)
        if self._owner.execute_errors:
            raise self._owner.execute_errors.pop(0)
        if not self._owner.no_result_set:
            self.description = ("key", "options")
            self._rows = list(self._owner.rows)

    def fetchall(self) -> list[dict[str, Any]]:
        if self._owner.fetch_error is not None:
            raise self._owner.fetch_error
        return self._rows

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, owner: "FakeConnector", *, alive: bool) -> None:
        self._owner = owner
        self.alive = alive
        self.closed = False

    def cursor(self) -> FakeCursor:
        cursor = FakeCursor(self._owner)
        self._owner.cursors.append(cursor)
        return cursor

    def close(self) -> None:
        self.closed = True


class FakeConnector(Connector):
    """Connector whose connect/health/execute failures are scripted."""

    driver_errors = (FakeDriverError,)

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        *,
        rows: list[dict[str, Any]] | None = None,
        connect_failures: int = 0,
        unhealthy_opens: int = 0,
        execute_errors: list[Exception] | None = None,
        no_result_set: bool = False,
        fetch_error: Exception | None = None,
    ) -> None:
        super().__init__(config or ConnectionConfig(backend="mysql", host="db1", database="keys"))
        self.rows = rows or []
        self.connect_failures = connect_failures
        self.unhealthy_opens = unhealthy_opens
        self.execute_errors = list(execute_errors or [])
        self.no_result_set = no_result_set
        self.fetch_error = fetch_error
        self.opens = 0
        self.queries: list[str] = []
        self.cursors: list[FakeCursor] = []
        self.connections: list[FakeConnection] = []
        self.active = 0
        self.max_active = 0

    def _connect(self) -> FakeConnection:
        self.opens += 1
        if self.connect_failures:
            self.connect_failures -= 1
            raise FakeDriverError("connection refused")
        conn = FakeConnection(self, alive=self.unhealthy_opens == 0)
        if self.unhealthy_opens:
            self.unhealthy_opens -= 1
        self.connections.append(conn)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return conn

    def close(self) -> None:
        if self._conn is not None:
            self.active -= 1
        super().close()

    def healthy(self) -> bool:
        return self._conn is not None and self._conn.alive and not self._conn.closed

    def literal(self, value: str) -> str:
        return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"

    def is_transient(self, exc: BaseException) -> bool:
        return getattr(exc, "transient", False)


@pytest.fixture
def config() -> ConnectionConfig:
    return ConnectionConfig(backend="mysql", host="db1", port=0, user="svc", password="x", database="keys")
