from __future__ import annotations

from phim_backend.ingestion.fingerprint import fingerprint, stable_json


def test_fingerprint_is_key_order_independent() -> None:
    a = {"movie": {"name": "Phim", "year": 2024}, "episodes": [1, 2]}
    b = {"episodes": [1, 2], "movie": {"year": 2024, "name": "Phim"}}

    assert fingerprint(a) == fingerprint(b)


def test_fingerprint_changes_with_content() -> None:
    assert fingerprint({"view": 1}) != fingerprint({"view": 2})
    assert fingerprint({"episodes": [1, 2]}) != fingerprint({"episodes": [2, 1]})


def test_fingerprint_is_sha256_hex() -> None:
    value = fingerprint({"a": 1})

    assert len(value) == 64
    assert all(ch in "0123456789abcdef" for ch in value)


def test_stable_json_is_compact_and_keeps_unicode() -> None:
    assert stable_json({"b": 1, "a": "Phim Hàn"}) == '{"a":"Phim Hàn","b":1}'
