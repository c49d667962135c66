"""
Exceptions raised by dbkeys.

Only operator mistakes and pathological input reach the caller as
exceptions. Connectivity and query failures never do: the resolver logs
them and answers "no keys" instead.
"""


class DBKeysError(Exception):
    """Base class for every dbkeys exception."""


class ConfigError(DBKeysError):
    """The connection configuration is missing or malformed."""


class ConnectorError(DBKeysError):
    """A connector could not be built (unknown engine, no driver installed)."""


class LookupInputError(DBKeysError):
    """Username or fingerprint is longer than a lookup accepts."""


class QueryTooLongError(DBKeysError):
    """The rendered key query does not fit the query buffer."""

    def __init__(self, length, limit):
        super().__init__(
            f"Rendered key query is {length} bytes, limit is {limit}"
        )
        self.length = length
        self.limit = limit
