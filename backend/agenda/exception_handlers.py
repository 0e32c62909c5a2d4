"""FastAPI exception handlers.

Every error leaves the API in the same envelope::

    {"success": false, "message": "...", "errors": [...]}

Domain exceptions carry their own status; request validation failures
become 400 with one entry per field; database constraint violations are
mapped to 409 (unique) or 400 (foreign key). Anything else reaches the
terminal handler, which logs the full request context and hides the
details in production.
"""

import json
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import AgendaError

logger = logging.getLogger("agenda.api")

_UNIQUE_MARKERS = ("unique", "duplicate")
_FOREIGN_KEY_MARKERS = ("foreign key",)
_PG_UNIQUE_VIOLATION = "23505"
_PG_FOREIGN_KEY_VIOLATION = "23503"


def error_body(message: str, errors=None, **extra) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body


def _field_name(loc) -> str:
    parts = [str(p) for p in loc]
    if parts and parts[0] in ("body", "query", "path", "header"):
        parts = parts[1:]
    return ".".join(parts) or "body"


async def agenda_error_handler(request: Request, exc: AgendaError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"field": _field_name(e.get("loc", ())), "message": e.get("msg", "invalid value")} for e in exc.errors()]
    if exc.errors() and all(e.get("loc", ("",))[0] == "path" for e in exc.errors()):
        message = "invalid path parameters"
    elif exc.errors() and all(e.get("loc", ("",))[0] == "query" for e in exc.errors()):
        message = "invalid query parameters"
    else:
        message = "invalid input data"
    return JSONResponse(status_code=400, content=error_body(message, errors))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    extra = {"path": request.url.path} if exc.status_code == 404 else {}
    message = exc.detail if isinstance(exc.detail, str) else "request error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, **extra),
        headers=getattr(exc, "headers", None),
    )


def classify_integrity_error(exc: IntegrityError) -> str:
    """Return "unique", "foreign_key" or "other" for a constraint violation."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == _PG_UNIQUE_VIOLATION:
        return "unique"
    if code == _PG_FOREIGN_KEY_VIOLATION:
        return "foreign_key"
    text = str(orig or exc).lower()
    if any(m in text for m in _UNIQUE_MARKERS):
        return "unique"
    if any(m in text for m in _FOREIGN_KEY_MARKERS):
        return "foreign_key"
    return "other"


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    kind = classify_integrity_error(exc)
    logger.warning("integrity error (%s) on %s %s: %s", kind, request.method, request.url.path, exc.orig)
    if kind == "unique":
        return JSONResponse(status_code=409, content=error_body("a record with this data already exists"))
    if kind == "foreign_key":
        return JSONResponse(status_code=400, content=error_body("the record references or is referenced by other data"))
    return JSONResponse(status_code=400, content=error_body("the data violates a database constraint"))


async def no_result_handler(request: Request, exc: NoResultFound) -> JSONResponse:
    return JSONResponse(status_code=404, content=error_body("record not found"))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error %s",
        json.dumps(
            {
                "error": str(exc),
                "type": type(exc).__name__,
                "url": str(request.url),
                "method": request.method,
                "ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent", ""),
                "request_id": getattr(request.state, "request_id", ""),
            },
            ensure_ascii=True,
        ),
    )
    settings = request.app.state.settings
    if settings.is_production:
        return JSONResponse(status_code=500, content=error_body("internal server error"))
    return JSONResponse(
        status_code=500,
        content=error_body("internal server error", error=str(exc), type=type(exc).__name__),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    app.add_exception_handler(AgendaError, agenda_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(NoResultFound, no_result_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
