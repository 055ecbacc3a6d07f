"""Value serialization for cache entries."""

from __future__ import annotations

import math
import pickle
from typing import Any


class Serialization:
    """Pickle-based serializer with a numeric fast path.

    Integers and finite floats are stored as their decimal text so INCRBY and
    DECRBY work on them and other clients can read them. Everything else,
    including ``bool``, is pickled.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        """Initialize with the pickle protocol used for non-numeric values."""
        self._protocol = protocol

    def serialize(self, value: Any) -> bytes:  # noqa: ANN401
        """Encode a value for a regular Redis command."""
        if _is_plain_number(value):
            return repr(value).encode("ascii")
        return pickle.dumps(value, protocol=self._protocol)

    def serialize_for_script(self, value: Any) -> bytes:  # noqa: ANN401
        """Encode a value passed to a Lua script.

        Script arguments are written by the script as-is, so they must already
        be in stored form.
        """
        return self.serialize(value)

    def unserialize(self, raw: bytes | str) -> Any:  # noqa: ANN401
        """Decode a stored value."""
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        number = _parse_number(raw)
        if number is not None:
            return number
        return pickle.loads(raw)  # noqa: S301


def _is_plain_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _parse_number(raw: bytes) -> int | float | None:
    """Parse a numeric fast-path payload. Pickles never parse as numbers."""
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        return None
    return number if math.isfinite(number) else None
