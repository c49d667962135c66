"""
MySQL / MariaDB connector.

Supports two MySQL Python drivers:
  1. mysql-connector-python (Oracle's official driver)
  2. PyMySQL (pure Python, lighter weight)

It auto-detects which is installed and uses it. If neither is found it
raises ConnectorError with install instructions. Pass driver= to pick one.

Connection-loss errors (eligible for one retry by the resolver):
  2006  CR_SERVER_GONE_ERROR   MySQL server has gone away
  2013  CR_SERVER_LOST         Lost connection to MySQL server during query
  2055  CR_SERVER_LOST_EXTENDED
"""

from __future__ import annotations

from ..errors import ConnectorError
from .base import Connector

CR_SERVER_GONE_ERROR = 2006
CR_SERVER_LOST = 2013
CR_SERVER_LOST_EXTENDED = 2055

TRANSIENT_ERRNOS = frozenset(
    (CR_SERVER_GONE_ERROR, CR_SERVER_LOST, CR_SERVER_LOST_EXTENDED)
)

_DRIVERS = ("mysql-connector", "pymysql")


def detect_driver() -> str:
    """Name of the first importable MySQL driver."""
    try:
        import mysql.connector  # noqa: F401
        return "mysql-connector"
    except ImportError:
        try:
            import pymysql  # noqa: F401
            return "pymysql"
        except ImportError:
            raise ConnectorError(
                "No MySQL driver found. Install one:\n"
                "  pip install mysql-connector-python\n"
                "  pip install PyMySQL"
            ) from None


class MySQLConnector(Connector):
    """MySQL/MariaDB via mysql-connector-python or PyMySQL."""

    def __init__(self, config, *, driver=None):
        super().__init__(config)
        if driver is not None and driver not in _DRIVERS:
            raise ConnectorError(
                f"Unknown MySQL driver '{driver}'. Supported: {', '.join(_DRIVERS)}"
            )
        self.driver = driver or detect_driver()

        if self.driver == "mysql-connector":
            import mysql.connector
            self.driver_errors = (mysql.connector.Error,)
        else:
            import pymysql
            self.driver_errors = (pymysql.err.MySQLError,)

    def _connect(self):
        cfg = self.config
        if self.driver == "mysql-connector":
            import mysql.connector
            # use_pure keeps the converter (and its escape routine) on the handle
            return mysql.connector.connect(
                host=cfg.host, port=cfg.effective_port(),
                user=cfg.user, password=cfg.password or "",
                database=cfg.database,
                connection_timeout=cfg.connect_timeout,
                autocommit=True, use_pure=True,
            )
        else:
            import pymysql
            return pymysql.connect(
                host=cfg.host, port=cfg.effective_port(),
                user=cfg.user, password=cfg.password or "",
                database=cfg.database,
                connect_timeout=cfg.connect_timeout,
                autocommit=True, charset="utf8mb4",
                # DictCursor makes rows behave like dicts (access by column name)
                cursorclass=pymysql.cursors.DictCursor,
            )

    def _cursor(self):
        # mysql-connector uses dictionary=True for dict rows
        # PyMySQL already uses DictCursor from the connection config
        if self.driver == "mysql-connector":
            return self._conn.cursor(dictionary=True)
        return self._conn.cursor()

    # ── Interface ─────────────────────────────────────────────

    def healthy(self):
        if self._conn is None:
            return False
        try:
            self._conn.ping(reconnect=False)
            return True
        except self.driver_errors:
            return False

    def literal(self, value):
        """
        Escape with the server-aware routine of the live handle.

        PyMySQL honours NO_BACKSLASH_ESCAPES from the server status;
        mysql-connector needs the session sql_mode passed to its converter.
        """
        if self._conn is None:
            raise self._not_connected()
        if self.driver == "mysql-connector":
            escaped = self._conn.converter.escape(value, self._conn.sql_mode)
            if isinstance(escaped, bytes):
                escaped = escaped.decode("utf-8")
            return f"'{escaped}'"
        return f"'{self._conn.escape_string(value)}'"

    def is_transient(self, exc):
        return self.errno(exc) in TRANSIENT_ERRNOS

    @staticmethod
    def errno(exc):
        """MySQL client error number of a driver exception, if any."""
        code = getattr(exc, "errno", None)
        if code is None and exc.args and isinstance(exc.args[0], int):
            code = exc.args[0]
        return code

    def error_message(self, exc):
        # PyMySQL errors are (code, message) tuples
        if len(exc.args) == 2 and isinstance(exc.args[0], int):
            return f"({exc.args[0]}) {exc.args[1]}"
        return super().error_message(exc)

    def _not_connected(self):
        if self.driver == "mysql-connector":
            import mysql.connector
            return mysql.connector.errors.OperationalError(
                "MySQL Connection not available", errno=CR_SERVER_GONE_ERROR
            )
        import pymysql
        return pymysql.err.InterfaceError(0, "Not connected")

    def __repr__(self):
        return (f"<MySQLConnector[{self.driver}] "
                f"{self.config.user or ''}@{self.config.describe()}>")
