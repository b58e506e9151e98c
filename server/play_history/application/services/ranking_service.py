from __future__ import annotations
"""server/play_history/application/services/ranking_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Classement "most watched" sur une fenêtre temporelle [start, end).

- une unité par lecture stockée (un utilisateur qui relance le même contenu
  compte plusieurs fois : c'est un nombre de lectures, pas de spectateurs) ;
- tri : totalPlayCount DESC puis contentId ASC (sortie déterministe) ;
- `limit` appliqué APRÈS le classement complet ;
- précondition start < end vérifiée AVANT toute requête.
"""

import logging
from datetime import datetime
from typing import Any, Callable, ContextManager, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from play_history.core.config import settings
from play_history.core.errors import ServerError, ValidationError
from play_history.core.utils.datetime import ensure_utc, parse_iso_utc, to_iso_z
from play_history.infrastructure.persistence.database.session import open_session
from play_history.infrastructure.persistence.repositories.play_event_repository import PlayEventRepository

logger = logging.getLogger(__name__)

Instant = Union[datetime, str]


def _to_instant(value: Instant, name: str) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValidationError(f'"{name}" must carry a timezone')
        return ensure_utc(value)
    try:
        return parse_iso_utc(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f'"{name}" must be an ISO-8601 date with timezone (e.g. 2025-09-01T00:00:00Z)') from exc


class RankingService:
    def __init__(
        self,
        session_factory: Optional[Callable[[], ContextManager[Session]]] = None,
        *,
        max_limit: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory or open_session
        self.max_limit = max_limit or settings.MOST_WATCHED_LIMIT_MAX

    def most_watched(self, start: Instant, end: Instant, limit: int) -> dict[str, Any]:
        """Retour : {"items": [{"contentId", "totalPlayCount"}], "startDate", "endDate"}."""
        start_dt = _to_instant(start, "from")
        end_dt = _to_instant(end, "to")
        if start_dt >= end_dt:
            raise ValidationError('"from" date must be before "to" date')
        if isinstance(limit, bool) or not isinstance(limit, int) or not (1 <= limit <= self.max_limit):
            raise ValidationError(f"limit must be an integer between 1 and {self.max_limit}")

        try:
            with self.session_factory() as session:
                rows = PlayEventRepository(session).most_watched(start_dt, end_dt, limit)
        except SQLAlchemyError as exc:
            logger.exception("ranking.store_error")
            raise ServerError("Event store unavailable") from exc

        logger.info(
            "ranking.most_watched",
            extra={"start": to_iso_z(start_dt), "end": to_iso_z(end_dt), "limit": limit, "results": len(rows)},
        )
        return {
            "items": [{"contentId": content_id, "totalPlayCount": total} for content_id, total in rows],
            "startDate": to_iso_z(start_dt),
            "endDate": to_iso_z(end_dt),
        }
