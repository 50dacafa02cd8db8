# Overview: Shared page/limit handling for list endpoints.

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total > 0 else 0

    def envelope(self, serialize) -> dict:
        return {
            "data": [serialize(item) for item in self.items],
            "total": self.total,
            "page": self.page,
            "total_pages": self.total_pages,
        }


def paginate(query, page: int | None = None, limit: int | None = None) -> Page:
    """Apply 1-indexed page/limit to a query (limit defaults to 20, max 100)."""
    limit = min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)
    page = max(page or 1, 1)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)
