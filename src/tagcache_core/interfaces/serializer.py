"""Abstract value serializer interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Serializer(Protocol):
    """Converts cache values to and from their stored form."""

    def serialize(self, value: Any) -> bytes:  # noqa: ANN401
        """Encode a value for a regular Redis command."""
        ...

    def serialize_for_script(self, value: Any) -> bytes:  # noqa: ANN401
        """Encode a value passed as a Lua script argument."""
        ...

    def unserialize(self, raw: bytes | str) -> Any:  # noqa: ANN401
        """Decode a stored value."""
        ...
