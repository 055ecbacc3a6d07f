"""Domain models for the tagged cache."""

from tagcache_core.models.results import (
    PruneStats,
    RememberResult,
    WriteResult,
    WriteStatus,
)
from tagcache_core.models.topology import TopologyMode

__all__ = [
    "PruneStats",
    "RememberResult",
    "TopologyMode",
    "WriteResult",
    "WriteStatus",
]
