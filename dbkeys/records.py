"""
Key records returned by a lookup.

A lookup hands back its matches in two shapes:

    KeyRecordList  sentinel-terminated list, the fail-closed shape sshd
                   integrations expect: iterate until the empty record.
    LookupResult   explicit result that tells "zero matches" apart from
                   "the lookup failed". Flatten it with as_key_list().
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class KeyRecord:
    """One public key row: the key material and its optional options clause."""

    key: str
    options: str | None = None

    @property
    def is_sentinel(self) -> bool:
        return not self.key

    def authorized_keys_line(self) -> str:
        """Render the record the way it would appear in authorized_keys."""
        if self.options:
            return f"{self.options} {self.key}"
        return self.key


SENTINEL = KeyRecord(key="")


class KeyRecordList(list):
    """
    Ordered key records, always closed by exactly one sentinel.

    Row order is the order the database returned. A list with no matches
    still holds the sentinel, so len() is never 0.
    """

    def __init__(self, records=()):
        super().__init__(r for r in records if not r.is_sentinel)
        super().append(SENTINEL)

    def keys(self):
        """Iterate the real records, stopping at the sentinel."""
        for record in self:
            if record.is_sentinel:
                return
            yield record

    def append(self, record):
        # Real records go in front of the sentinel.
        self.insert(len(self) - 1, record)


@dataclass(frozen=True)
class LookupResult:
    """Outcome of one lookup."""

    records: tuple[KeyRecord, ...] = field(default_factory=tuple)
    failed: bool = False

    @property
    def found(self) -> bool:
        return bool(self.records)

    @classmethod
    def failure(cls) -> "LookupResult":
        return cls(records=(), failed=True)

    def as_key_list(self) -> KeyRecordList:
        """Fail-closed view: failures and misses both become the bare sentinel."""
        return KeyRecordList(self.records)
