"""Public interface re-exports for tagcache_core."""

from tagcache_core.interfaces.connection import ConnectionContext
from tagcache_core.interfaces.serializer import Serializer

__all__ = [
    "ConnectionContext",
    "Serializer",
]
