"""HTTP routers, one module per resource, mounted under `/api`.

Routers are intentionally thin: they declare the role guards, accept
validated payloads, delegate to `agenda.services` and wrap the result in
the response envelope built by the helpers below.
"""

from typing import Optional

from ..models import ROLES
from ..utils.pagination import ListParams, page_meta

ALL_ROLES = ROLES


def ok(data=None, message: Optional[str] = None, **extra) -> dict:
    """Single-resource envelope: `{success, message?, data}`."""
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def listing(rows: list, params: ListParams, total: int) -> dict:
    """List envelope: `{success, data, pagination}`."""
    return {"success": True, "data": rows, "pagination": page_meta(params, total)}
