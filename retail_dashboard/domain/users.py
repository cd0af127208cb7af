from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional


@dataclass(frozen=True)
class ViewerContext:
    """
    Who is looking at the dashboard.

    Passed explicitly to the components that gate navigation actions.
    ``pages=None`` means the viewer is not restricted.
    """

    user_id: Optional[str] = None
    pages: Optional[FrozenSet[str]] = None

    @classmethod
    def unrestricted(cls) -> "ViewerContext":
        return cls()

    @classmethod
    def with_pages(cls, pages: Iterable[str], user_id: Optional[str] = None) -> "ViewerContext":
        return cls(user_id=user_id, pages=frozenset(p.strip().lower() for p in pages if p and p.strip()))

    def can_open(self, page: str) -> bool:
        return self.pages is None or page.lower() in self.pages
