"""Tests for shared helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from notaryledger.util import _encode_crockford_base32, canonical_json, format_rfc3339, new_ulid, sha256_hex


class TestUlid:
    def test_shape(self):
        ulid = new_ulid()
        assert len(ulid) == 26
        assert set(ulid) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")

    def test_sorts_by_timestamp(self):
        assert new_ulid(timestamp_ms=1_000) < new_ulid(timestamp_ms=2_000)

    def test_timestamp_out_of_range(self):
        with pytest.raises(ValueError):
            new_ulid(timestamp_ms=1 << 48)

    def test_timestamp_leads_the_id(self):
        assert new_ulid(timestamp_ms=32)[:10] == "0000000010"

    def test_fixed_width_encoding(self):
        assert _encode_crockford_base32(31 * 32 + 1, 3) == "0Z1"
        assert _encode_crockford_base32(0, 4) == "0000"


def test_canonical_json_is_sorted_and_compact():
    assert canonical_json({"b": 1, "a": [1, 2], "c": "ü"}) == '{"a":[1,2],"b":1,"c":"ü"}'.encode("utf-8")


def test_sha256_hex_accepts_str_and_bytes():
    assert sha256_hex("abc") == sha256_hex(b"abc")
    assert sha256_hex(b"abc").startswith("ba7816bf")


@pytest.mark.parametrize(
    "ts",
    [
        datetime(2024, 5, 1, 9, 30, 0, 999_999, tzinfo=timezone.utc),
        datetime(2024, 5, 1, 9, 30, 0),
        datetime(2024, 5, 1, 16, 30, 0, tzinfo=timezone(timedelta(hours=7))),
    ],
)
def test_format_rfc3339_is_utc_seconds(ts):
    assert format_rfc3339(ts) == "2024-05-01T09:30:00Z"
