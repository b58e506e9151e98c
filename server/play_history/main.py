from __future__ import annotations
"""server/play_history/main.py
~~~~~~~~~~~~~~~~~~~~~~~~
Point d'entrée FastAPI.
"""
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from play_history.api.v1.errors import install_exception_handlers
from play_history.api.v1.router import api_router
from play_history.core.config import settings
from play_history.core.logging import setup_logging

app = FastAPI(title="Play History Service", version="1.0.0")

allow_origins: List[str] = []
if origins := getattr(settings, "CORS_ALLOW_ORIGINS", None):
    allow_origins = [o.strip() for o in origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins or ["*"],
    allow_credentials=bool(allow_origins),
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

install_exception_handlers(app)


@app.on_event("startup")
async def startup() -> None:
    setup_logging(settings.LOG_LEVEL)


app.include_router(api_router, prefix="/api/v1")
