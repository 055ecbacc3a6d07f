"""Key naming for the any-tag cache structures."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from tagcache_core.constants import (
    REGISTRY_NAME,
    REVERSE_INDEX_SUFFIX,
    TAG_HASH_SUFFIX,
    TAG_SEGMENT,
)


@dataclass(frozen=True)
class KeyCodec:
    """Derives Redis key names from a logical cache key or tag name.

    ``prefix + key``                         cache entry
    ``prefix + key + ":_any:tags"``          reverse index (set of tag names)
    ``prefix + "_any:tag:" + tag + ":entries"``  tag hash (field per member key)
    ``prefix + "_any:tag:registry"``         tag registry (sorted set)
    """

    prefix: str = ""

    def entry(self, key: str) -> str:
        """Key holding the cached value."""
        return f"{self.prefix}{key}"

    def reverse_index(self, key: str) -> str:
        """Set of tag names the key currently belongs to."""
        return f"{self.prefix}{key}{REVERSE_INDEX_SUFFIX}"

    def tag_hash(self, tag: str) -> str:
        """Hash whose fields are the member keys of a tag."""
        return f"{self.tag_prefix}{tag}{TAG_HASH_SUFFIX}"

    @property
    def tag_prefix(self) -> str:
        """Everything in a tag hash key that precedes the tag name."""
        return f"{self.prefix}{TAG_SEGMENT}"

    @property
    def tag_hash_suffix(self) -> str:
        """Everything in a tag hash key that follows the tag name."""
        return TAG_HASH_SUFFIX

    @property
    def registry(self) -> str:
        """Sorted set of live tag names scored by expiry."""
        return f"{self.tag_prefix}{REGISTRY_NAME}"


def decode(value: bytes | str) -> str:
    """Return a Redis reply element as text."""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def normalize_tags(tags: Iterable[object] | str | None) -> list[str]:
    """Cast tag names to strings and drop duplicates, keeping first-seen order."""
    if tags is None:
        return []
    if isinstance(tags, str | bytes):
        tags = [tags]
    names = (decode(t) if isinstance(t, bytes) else str(t) for t in tags)
    return list(dict.fromkeys(names))
