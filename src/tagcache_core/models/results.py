"""Result types returned by tagged cache operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field


class WriteStatus(StrEnum):
    """Outcome of a conditional write."""

    ADDED = "added"
    ALREADY_EXISTS = "already_exists"
    FAILURE = "failure"


@dataclass(frozen=True)
class WriteResult:
    """Result of an add: the entry was created, already existed, or failed.

    Truthy only when the entry was created.
    """

    status: WriteStatus
    reason: str | None = None

    @classmethod
    def added(cls) -> WriteResult:
        """The key did not exist and was written."""
        return cls(WriteStatus.ADDED)

    @classmethod
    def already_exists(cls) -> WriteResult:
        """The key was present; nothing was written."""
        return cls(WriteStatus.ALREADY_EXISTS)

    @classmethod
    def failure(cls, reason: str) -> WriteResult:
        """The write was refused before reaching Redis."""
        return cls(WriteStatus.FAILURE, reason)

    def __bool__(self) -> bool:
        return self.status is WriteStatus.ADDED


class RememberResult(NamedTuple):
    """Value returned by remember operations and whether it came from the cache."""

    value: Any
    hit: bool


class PruneStats(BaseModel):
    """Counters reported by a prune pass. Used for observability only."""

    hashes_scanned: int = Field(default=0, description="Tag hashes visited")
    fields_checked: int = Field(default=0, description="Tag hash fields checked for a live entry")
    orphans_removed: int = Field(default=0, description="Fields removed because their entry was gone")
    empty_hashes_deleted: int = Field(default=0, description="Tag hashes deleted after becoming empty")
    expired_tags_removed: int = Field(default=0, description="Registry members dropped as expired")
