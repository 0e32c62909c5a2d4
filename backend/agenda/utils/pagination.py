"""Query parameters and metadata for paginated list endpoints."""

from __future__ import annotations

import math
from typing import Optional

from fastapi import Query


class ListParams:
    """Validated `page`/`limit`/`sortBy`/`sortOrder` query parameters.

    Used as a FastAPI dependency (`params: ListParams = Depends()`).
    `sort_by` and `sort_order` stay `None` when the client does not ask
    for an order; repositories then apply their own default.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        sortBy: Optional[str] = Query(None, max_length=50),
        sortOrder: Optional[str] = Query(None, pattern="^(asc|desc)$"),
    ):
        self.page = page
        self.limit = limit
        self.sort_by = sortBy
        self.sort_order = sortOrder

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_meta(params: ListParams, total: int) -> dict:
    """Return the `pagination` block of a list response."""
    return {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "totalPages": math.ceil(total / params.limit) if total else 0,
    }
