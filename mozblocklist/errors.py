"""Error taxonomy for blocklist indexing and collection state guards."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mozblocklist.models import BlockEntry


class MalformedPatternError(ValueError):
    """A regex guid pattern from the blocklist snapshot failed to compile."""

    def __init__(self, entry: BlockEntry, reason: str) -> None:
        self.entry = entry
        self.reason = reason
        super().__init__(f"invalid guid regex {entry.guid_pattern!r}: {reason}")


class InvalidStateError(ValueError):
    """The staging collection is not in a state that permits the requested operation."""

    def __init__(self, current: str, allowed: Iterable[str]) -> None:
        self.current = str(current)
        self.allowed = sorted(str(state) for state in allowed)
        super().__init__(
            f"expected blocklist to be in states {','.join(self.allowed)}, "
            f"but was in {self.current}"
        )
