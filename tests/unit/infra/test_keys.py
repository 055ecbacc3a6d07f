"""Tests for key naming and tag normalization."""

from __future__ import annotations

import pytest

from tagcache_infra.redis.keys import KeyCodec, decode, normalize_tags


@pytest.mark.unit
class TestKeyCodec:
    """Key layout is fixed; other clients read the same keys."""

    def test_key_names(self) -> None:
        keys = KeyCodec("app:")
        assert keys.entry("name") == "app:name"
        assert keys.reverse_index("name") == "app:name:_any:tags"
        assert keys.tag_hash("people") == "app:_any:tag:people:entries"
        assert keys.registry == "app:_any:tag:registry"

    def test_tag_hash_is_prefix_plus_tag_plus_suffix(self) -> None:
        keys = KeyCodec("app:")
        assert keys.tag_prefix + "x" + keys.tag_hash_suffix == keys.tag_hash("x")

    def test_empty_prefix(self) -> None:
        keys = KeyCodec()
        assert keys.entry("k") == "k"
        assert keys.registry == "_any:tag:registry"


@pytest.mark.unit
class TestNormalizeTags:
    """Tag names become strings, deduplicated in first-seen order."""

    def test_dedup_keeps_order(self) -> None:
        assert normalize_tags(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]

    def test_casts_to_str(self) -> None:
        assert normalize_tags([1, "1", b"two"]) == ["1", "two"]

    def test_single_string(self) -> None:
        assert normalize_tags("people") == ["people"]

    def test_none(self) -> None:
        assert normalize_tags(None) == []

    def test_decode(self) -> None:
        assert decode(b"caf\xc3\xa9") == "café"
        assert decode("plain") == "plain"
