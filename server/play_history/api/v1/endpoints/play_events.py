from __future__ import annotations
"""
server/play_history/api/v1/endpoints/play_events.py
~~~~~~~~~~~~~~~~~~~~~~~~
Endpoints lectures :

- POST  /play                        : ingestion idempotente (X-Idempotency-Key)
- GET   /history/most-watched        : classement sur [from, to)
- GET   /history/{user_id}           : historique paginé (limit, cursor)
- PATCH /history/{user_id}           : anonymisation (droit à l'oubli)

Les endpoints sont synchrones (`def`) : FastAPI les exécute dans son pool de
threads, chaque appel de service ouvrant sa propre Session.
"""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from play_history.api.schemas.play_event import (
    AnonymizationOut,
    MostWatchedResponse,
    PlayEventCreate,
    PlayEventOut,
    PlayHistoryPage,
)
from play_history.application.services.anonymization_service import AnonymizationService
from play_history.application.services.history_service import HistoryService
from play_history.application.services.ingestion_service import MAX_IDEMPOTENCY_KEY_LENGTH, IngestionService
from play_history.application.services.ranking_service import RankingService
from play_history.core.config import settings
from play_history.core.errors import ValidationError

router = APIRouter()

IDEMPOTENCY_HEADER = "X-Idempotency-Key"


# ---------------------------------------------------------------------------
# Dépendances (surchargées dans les tests via app.dependency_overrides)
# ---------------------------------------------------------------------------

def get_ingestion_service() -> IngestionService:
    return IngestionService()


def get_history_service() -> HistoryService:
    return HistoryService()


def get_ranking_service() -> RankingService:
    return RankingService()


def get_anonymization_service() -> AnonymizationService:
    return AnonymizationService()


def _check_idempotency_key(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"Header {IDEMPOTENCY_HEADER.lower()} is required")
    value = value.strip()
    if len(value) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(f"Invalid {IDEMPOTENCY_HEADER} (too long)")
    if settings.IDEMPOTENCY_KEY_REQUIRE_UUID4:
        try:
            parsed = uuid.UUID(value)
        except ValueError:
            parsed = None
        if parsed is None or parsed.version != 4:
            raise ValidationError(f"Header {IDEMPOTENCY_HEADER.lower()} must be a valid UUID v4")
    return value


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/play", status_code=201, response_model=PlayEventOut)
def post_play(
    payload: PlayEventCreate,
    x_idempotency_key: Optional[str] = Header(default=None, alias=IDEMPOTENCY_HEADER),
    service: IngestionService = Depends(get_ingestion_service),
) -> dict:
    key = _check_idempotency_key(x_idempotency_key)
    return service.submit(payload, key)


# Déclarée AVANT /history/{user_id} pour ne pas être capturée par le path param
@router.get("/history/most-watched", response_model=MostWatchedResponse)
def get_most_watched(
    from_: str = Query(..., alias="from", description="ISO-8601 UTC, inclusive"),
    to: str = Query(..., description="ISO-8601 UTC, exclusive"),
    limit: int = Query(settings.MOST_WATCHED_LIMIT_DEFAULT, ge=1, le=settings.MOST_WATCHED_LIMIT_MAX),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    return service.most_watched(from_, to, limit)


@router.get("/history/{user_id}", response_model=PlayHistoryPage)
def get_user_history(
    user_id: str,
    limit: int = Query(settings.HISTORY_LIMIT_DEFAULT, ge=1, le=settings.HISTORY_LIMIT_MAX),
    cursor: Optional[str] = Query(None, description="nextCursor of the previous page"),
    service: HistoryService = Depends(get_history_service),
) -> dict:
    return service.page(user_id, limit, cursor)


@router.patch("/history/{user_id}", response_model=AnonymizationOut)
def anonymize_user(
    user_id: str,
    service: AnonymizationService = Depends(get_anonymization_service),
) -> dict:
    # TODO: restreindre à un rôle admin/système quand l'auth sera branchée
    result = service.anonymize(user_id)
    return {
        "status": "anonymized",
        "userId": result.user_id,
        "matched": result.matched,
        "modified": result.modified,
    }
