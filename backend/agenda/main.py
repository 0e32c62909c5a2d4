"""FastAPI application entrypoint.

`create_app` wires the settings, the database engine, the federated
token verifier, middleware, exception handlers and routers into one
application instance. Each app owns its engine, so tests build as many
isolated apps as they need.

Endpoints implemented (all JSON):
- /api/auth: register, login, google, profile
- /api/usuarios, /api/carreras, /api/grupos (+ /{id}/miembros),
  /api/miembros, /api/invitaciones (+ /usuario/{id})
- GET /health, GET /info
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.engine import Engine

from .auth import FederatedTokenVerifier
from .config import Settings, settings as default_settings
from .database import build_engine, create_db_and_tables
from .exception_handlers import error_body, register_exception_handlers
from .routes import auth, careers, groups, invitations, members, users
from .utils.rate_limit import InMemoryRateLimiter

API_VERSION = "1.0.0"

logger = logging.getLogger("agenda.api")


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    federated_verifier: Optional[FederatedTokenVerifier] = None,
) -> FastAPI:
    """Build a fully wired application.

    The engine is created from `settings.DATABASE_URL` unless one is
    given, tables are created immediately, and the engine is disposed
    when the application shuts down.
    """
    settings = settings or default_settings
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)
    engine = engine or build_engine(settings.DATABASE_URL)
    create_db_and_tables(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.engine.dispose()

    app = FastAPI(title="University Agenda API", version=API_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.federated_verifier = federated_verifier or FederatedTokenVerifier(settings)
    app.state.rate_limiter = InMemoryRateLimiter(settings.RATE_LIMIT_MAX_REQUESTS, settings.RATE_LIMIT_WINDOW_SECONDS)

    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        client = request.client.host if request.client else "unknown"
        started = time.perf_counter()
        if request.url.path.startswith("/api/"):
            allowed, retry_after = request.app.state.rate_limiter.allow(client)
            if not allowed:
                logger.warning("rate_limited %s", json.dumps({"request_id": req_id, "client": client}, ensure_ascii=True))
                return JSONResponse(
                    status_code=429,
                    content=error_body("too many requests from this address, try again later"),
                    headers={"Retry-After": str(retry_after), "X-Request-ID": req_id},
                )
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": client,
                    },
                    ensure_ascii=True,
                ),
            )
            raise
        response.headers["X-Request-ID"] = req_id
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": client,
                },
                ensure_ascii=True,
            ),
        )
        return response

    register_exception_handlers(app)

    for module in (auth, users, careers, groups, members, invitations):
        app.include_router(module.router)

    @app.get("/health")
    def health():
        """Lightweight health check for uptime monitoring."""
        return {"success": True, "status": "ok", "version": API_VERSION}

    @app.get("/info")
    def info():
        return {
            "success": True,
            "name": "University Agenda API",
            "description": "Contact directory for students, faculty and staff, with groups and invitations",
            "version": API_VERSION,
            "endpoints": {
                "auth": "/api/auth",
                "usuarios": "/api/usuarios",
                "carreras": "/api/carreras",
                "grupos": "/api/grupos",
                "miembros": "/api/miembros",
                "invitaciones": "/api/invitaciones",
            },
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("agenda.main:app", host="0.0.0.0", port=8000)
