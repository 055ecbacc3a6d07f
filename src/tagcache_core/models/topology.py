"""Redis deployment topology."""

from __future__ import annotations

from enum import StrEnum


class TopologyMode(StrEnum):
    """How operations talk to Redis.

    Resolved once per client and handed to every operation; operations never
    inspect the client type themselves.
    """

    STANDALONE = "standalone"  # single node: Lua scripts and pipelines
    CLUSTER = "cluster"  # cross-slot keys: sequential commands, no scripts

    @property
    def is_cluster(self) -> bool:
        """True when commands must be issued sequentially."""
        return self is TopologyMode.CLUSTER
