"""Custom exception hierarchy for the tagged cache.

Redis transport and server errors are deliberately absent: they propagate
unchanged from redis-py so retry policy stays with the caller.
"""

from __future__ import annotations


class TagCacheError(Exception):
    """Base exception for all tagged cache errors."""


class UnsupportedTagOperationError(TagCacheError):
    """Raised when a read or delete is attempted through any-mode tags."""


class ScriptNotRegisteredError(TagCacheError):
    """Raised when a script name is not known to the script registry."""
