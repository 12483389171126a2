from __future__ import annotations

import time
import uuid
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cashora.api.router import api_router
from cashora.api.ws import router as ws_router
from cashora.core.errors import AppHTTPException, ErrorMessages, error_payload
from cashora.core.logging import setup_logging
from cashora.core.realtime import ConnectionManager
from cashora.core.request_id import ensure_request_id, get_request_id, set_request_id
from cashora.core.settings import settings
from cashora.core.storage import PUBLIC_PREFIX, storage

"""
Application FastAPI (entrypoint).

Rôle (fonctionnel) :
- Configure l’application (settings, CORS, middlewares, routers).
- Centralise l’observabilité :
  - request_id propagé (X-Request-Id)
  - logs structurés JSON (timing, status, client_ip, user_id)
  - seuil de “slow request”
- Uniformise les erreurs côté client (format error_payload, validation -> 400 "Invalid input").
- Initialise le manager WebSocket (push temps réel) et le montage statique des fichiers (/storage).

Ce fichier ne contient pas de logique métier :
- La logique métier est dans cashora.services
- Les routes sont dans cashora.api
- Les composants transverses sont dans cashora.core
"""


# --- Force UTF-8 in Content-Type for JSON responses ---
class UTF8JSONResponse(JSONResponse):
    """Réponse JSON avec charset UTF-8 explicite (cohérent sur tous les endpoints)."""
    media_type = "application/json; charset=utf-8"


# --- Logging (niveau depuis .env si dispo) ---
setup_logging(settings.LOG_LEVEL)

# logger principal projet
log = logging.getLogger("cashora")

# logger dédié observabilité HTTP (séparé du métier)
http_log = logging.getLogger("cashora.http")

# seuil slow request (ms)
SLOW_MS = settings.SLOW_REQUEST_MS


def _split_origins(value: str) -> list[str]:
    """Parse une liste d’origines CORS depuis une string 'a,b,c'."""
    if not value:
        return []
    return [o.strip() for o in value.split(",") if o.strip()]


def _rid(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid.uuid4())


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Ferme proprement les sessions WebSocket encore ouvertes
    await app.state.ws_manager.close_all()


app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
    default_response_class=UTF8JSONResponse,
    lifespan=lifespan,
)

# WebSocket manager partagé (accessible via request.app.state.ws_manager)
app.state.ws_manager = ConnectionManager()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=_split_origins(settings.CORS_ORIGINS),
    allow_credentials=False,  # jeton Bearer, pas de cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-Request-Id",
    ],
)

# --- Routers ---
app.include_router(api_router)
app.include_router(ws_router)

# Fichiers uploadés (avatars)
app.mount(PUBLIC_PREFIX, StaticFiles(directory=str(storage.root), check_dir=False), name="storage")


# --- Middleware observabilité : request_id + timing + logs structurés ---
@app.middleware("http")
async def request_observability(request: Request, call_next):
    # Prend le header s’il existe, sinon génère un UUID
    rid = ensure_request_id(request.headers.get("X-Request-Id"))
    request.state.request_id = rid

    start = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
        response.headers["X-Request-Id"] = rid
        return response
    finally:
        duration_ms = int((time.perf_counter() - start) * 1000)

        # Slow request => WARNING, sinon INFO
        level = logging.WARNING if duration_ms >= SLOW_MS else logging.INFO
        http_log.log(
            level,
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": getattr(response, "status_code", None),
                "duration_ms": duration_ms,
                "client_ip": request.client.host if request.client else None,
                "user_id": getattr(request.state, "user_id", None),
            },
        )

        # Reset contextvar (propre en cas de réutilisation event loop / worker)
        set_request_id(None)


# --- Error handlers : format standard, pas de stacktrace côté client ---
@app.exception_handler(AppHTTPException)
async def app_http_exception_handler(request: Request, exc: AppHTTPException):
    """Erreurs applicatives (AppHTTPException) -> payload standard."""
    detail = exc.detail if isinstance(exc.detail, dict) else {}

    code = str(detail.get("code", "HTTP_ERROR"))
    message = str(detail.get("message", "HTTP error"))
    details = detail.get("details", None)

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Erreurs HTTP natives (404, 405, etc.) -> payload standard."""
    if isinstance(exc.detail, dict):
        code = str(exc.detail.get("code", "HTTP_ERROR"))
        message = str(exc.detail.get("message", "HTTP error"))
        details = exc.detail.get("details", None)
    else:
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        message = str(exc.detail)
        details = None

    return UTF8JSONResponse(
        status_code=exc.status_code,
        content=error_payload(code=code, message=message, status=exc.status_code, request_id=_rid(request), details=details),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Erreurs de validation Pydantic -> 400 "Invalid input" + champs en cause."""
    fields = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", "")), "type": err.get("type")}
        for err in exc.errors()
    ]
    return UTF8JSONResponse(
        status_code=400,
        content=error_payload(
            code="VALIDATION_ERROR",
            message=ErrorMessages.INVALID_INPUT,
            status=400,
            request_id=_rid(request),
            details=fields,
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Fallback : toute exception non gérée -> 500 + log serveur."""
    log.exception("Unhandled error: %s", exc)

    return UTF8JSONResponse(
        status_code=500,
        content=error_payload(
            code="INTERNAL_ERROR",
            message=ErrorMessages.INTERNAL,
            status=500,
            request_id=_rid(request),
        ),
    )
