from __future__ import annotations

from typing import Any, Iterable


class PartialResultList(list):
    """One page of results plus its offset and the estimated total (-1 when not counted)."""

    def __init__(self, items: Iterable[Any] = (), offset: int = 0, estimated_total: int = -1):
        super().__init__(items)
        self.offset = offset
        self.estimated_total = estimated_total

    @property
    def is_counted(self) -> bool:
        return self.estimated_total >= 0

    def __repr__(self) -> str:
        return f"PartialResultList({list.__repr__(self)}, offset={self.offset}, estimated_total={self.estimated_total})"
