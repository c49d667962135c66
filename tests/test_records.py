"""Tests for key record containers."""

from __future__ import annotations

from dbkeys.records import SENTINEL, KeyRecord, KeyRecordList, LookupResult


def test_empty_list_still_holds_the_sentinel() -> None:
    keys = KeyRecordList()

    assert len(keys) == 1
    assert keys[0].is_sentinel


def test_append_keeps_sentinel_last() -> None:
    keys = KeyRecordList([KeyRecord("ssh-rsa AAAA")])

    keys.append(KeyRecord("ssh-rsa BBBB", "no-pty"))

    assert [r.key for r in keys] == ["ssh-rsa AAAA", "ssh-rsa BBBB", ""]


def test_sentinels_in_input_are_not_duplicated() -> None:
    keys = KeyRecordList([KeyRecord("ssh-rsa AAAA"), SENTINEL])

    assert len(keys) == 2


def test_authorized_keys_line() -> None:
    assert KeyRecord("ssh-rsa AAAA").authorized_keys_line() == "ssh-rsa AAAA"
    record = KeyRecord("ssh-rsa AAAA", 'command="/bin/true",no-pty')
    assert record.authorized_keys_line() == 'command="/bin/true",no-pty ssh-rsa AAAA'


def test_failure_and_miss_flatten_to_the_same_list() -> None:
    miss = LookupResult()
    failure = LookupResult.failure()

    assert not miss.failed and failure.failed
    assert not miss.found and not failure.found
    assert list(miss.as_key_list()) == list(failure.as_key_list()) == [SENTINEL]


def test_found_result_flattens_in_order() -> None:
    result = LookupResult(records=(KeyRecord("a"), KeyRecord("b")))

    assert result.found
    assert [r.key for r in result.as_key_list().keys()] == ["a", "b"]
