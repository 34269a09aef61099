from __future__ import annotations

import math
from dataclasses import dataclass

"""Display range and page bounds for paginated stage data."""

__all__ = [
    "PageWindow",
    "page_window",
    "start_index",
]


def start_index(page: int, page_size: int) -> int:
    """Zero-based backend offset for 1-based ``page``."""
    if page < 1 or page_size < 1:
        raise ValueError(f"page and page_size must be >= 1 (got {page}, {page_size})")
    return (page - 1) * page_size


@dataclass(frozen=True)
class PageWindow:
    page: int
    page_size: int
    total: int
    start: int  # 1-based first displayed row, 0 when the page is empty
    end: int
    total_pages: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def label(self) -> str:
        return f"{self.start}-{self.end} of {self.total}"


def page_window(page: int, page_size: int, total: int, returned: int) -> PageWindow:
    start = start_index(page, page_size) + 1
    if returned <= 0 or total <= 0:
        start, end = 0, 0
    else:
        end = min(start + returned - 1, total)
    return PageWindow(
        page=page,
        page_size=page_size,
        total=total,
        start=start,
        end=end,
        total_pages=math.ceil(total / page_size) if total > 0 else 0,
    )
