"""Shared constants for the any-tag cache wire format."""

from __future__ import annotations

# Value stored in every tag hash field; only the field name carries data
TAG_FIELD_VALUE = "1"

# Registry score for tags that reference forever entries (9999-12-31T23:59:59Z)
MAX_EXPIRY = 253402300799

# Key segments
REVERSE_INDEX_SUFFIX = ":_any:tags"
TAG_SEGMENT = "_any:tag:"
TAG_HASH_SUFFIX = ":entries"
REGISTRY_NAME = "registry"

# Batching defaults
DEFAULT_CHUNK_SIZE = 1000
DEFAULT_SCAN_COUNT = 1000
DEFAULT_TAGGED_KEYS_THRESHOLD = 1000
DEFAULT_PRUNE_PAUSE_MS = 5

# TTL applied by add() when none is given
DEFAULT_ADD_TTL_SECONDS = 31536000
