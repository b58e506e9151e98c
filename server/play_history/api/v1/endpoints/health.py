from __future__ import annotations
"""server/play_history/api/v1/endpoints/health.py
~~~~~~~~~~~~~~~~~~~~~~~~
Health check (ping base).
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from play_history.core.utils.datetime import to_iso_z, utcnow
from play_history.infrastructure.persistence.database.session import get_db

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health(db: Session = Depends(get_db)):
    body = {"status": "ok", "timestamp": to_iso_z(utcnow()), "database": "connected"}
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log.error("Health check failed due to database error: %s", exc)
        body.update(status="unhealthy", database="failed")
        return JSONResponse(body, status_code=503)
    return body
