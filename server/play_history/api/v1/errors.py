from __future__ import annotations
"""server/play_history/api/v1/errors.py
~~~~~~~~~~~~~~~~~~~~~~~~
Traduction des erreurs en réponses HTTP (enveloppe unique).

Format :
    {"statusCode": <int>, "message": <str | list>, "timestamp": <ISO Z>, "path": <str>}

Mapping :
    - ValidationError / RequestValidationError -> 400
    - ConflictError                            -> 409
    - ServerError / exception non prévue       -> 500
    - HTTPException                            -> son propre status
"""
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from play_history.core.errors import PlayHistoryError
from play_history.core.utils.datetime import to_iso_z, utcnow

log = logging.getLogger(__name__)


def error_body(status_code: int, message: Any, path: str) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "message": message,
        "timestamp": to_iso_z(utcnow()),
        "path": path,
    }


def _validation_messages(exc: RequestValidationError) -> list[str]:
    msgs = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msgs.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return msgs


async def play_history_error_handler(request: Request, exc: PlayHistoryError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.failed path=%s error=%s", request.url.path, exc.message)
    body = error_body(exc.status_code, exc.message, request.url.path)
    return JSONResponse(body, status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(error_body(400, _validation_messages(exc), request.url.path), status_code=400)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = error_body(exc.status_code, exc.detail, request.url.path)
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unhandled path=%s", request.url.path)
    return JSONResponse(error_body(500, "Internal server error", request.url.path), status_code=500)


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PlayHistoryError, play_history_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
