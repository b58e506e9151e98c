from __future__ import annotations
"""
server/play_history/application/services/history_service.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Historique de lecture paginé par curseur.

Ordre total : (timestamp DESC, id DESC). `id` départage les lectures de même
timestamp, ce qui rend le curseur stable et déterministe.

Pagination "limit + 1" : on lit une ligne de plus que demandé ; sa présence
indique une page suivante. Pas de requête COUNT séparée (compromis assumé :
une ligne en trop par page).

Le curseur est l'id (en chaîne) du DERNIER élément renvoyé. Un curseur qui ne
correspond à aucune ligne est une erreur client (ValidationError), jamais
ignoré silencieusement. Un historique vide n'est pas une erreur.

Pagination "eventually stable" : une lecture insérée entre deux pages peut
décaler les résultats.
"""

import logging
from typing import Any, Callable, ContextManager, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from play_history.application.services.ingestion_service import to_response
from play_history.core.config import settings
from play_history.core.errors import ServerError, ValidationError
from play_history.infrastructure.persistence.database.models.play_event import PlayEvent
from play_history.infrastructure.persistence.database.session import open_session
from play_history.infrastructure.persistence.repositories.play_event_repository import PlayEventRepository

logger = logging.getLogger(__name__)


def parse_cursor(cursor: Optional[str]) -> Optional[int]:
    """'123' -> 123 ; None/'' -> None ; tout le reste -> ValidationError."""
    if cursor is None:
        return None
    raw = str(cursor).strip()
    if raw == "":
        return None
    # 18 chiffres max : reste dans un BIGINT signé
    if not (raw.isascii() and raw.isdigit()) or len(raw) > 18:
        raise ValidationError("Invalid cursor format. Must be an identifier returned as nextCursor.")
    return int(raw)


class HistoryService:
    def __init__(
        self,
        session_factory: Optional[Callable[[], ContextManager[Session]]] = None,
        *,
        max_limit: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory or open_session
        self.max_limit = max_limit or settings.HISTORY_LIMIT_MAX

    def page(self, user_id: str, limit: int, cursor: Optional[str] = None) -> dict[str, Any]:
        """
        Retour : {"userId", "items", "count", "nextCursor"}.
        `nextCursor` vaut None quand il n'y a plus de page.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("userId is required")
        if isinstance(limit, bool) or not isinstance(limit, int) or not (1 <= limit <= self.max_limit):
            raise ValidationError(f"limit must be an integer between 1 and {self.max_limit}")
        cursor_id = parse_cursor(cursor)

        try:
            with self.session_factory() as session:
                repo = PlayEventRepository(session)

                anchor: Optional[PlayEvent] = None
                if cursor_id is not None:
                    anchor = repo.get(cursor_id)
                    if anchor is None:
                        raise ValidationError("Invalid cursor: no play event matches this identifier.")

                rows = repo.find_history(user_id, limit=limit, after=anchor)
        except SQLAlchemyError as exc:
            logger.exception("history.store_error", extra={"user_id": user_id})
            raise ServerError("Event store unavailable") from exc

        # Une ligne en trop => page suivante ; on l'écarte (détection seulement)
        has_next = len(rows) > limit
        items = rows[:limit] if has_next else rows
        next_cursor = str(items[-1].id) if has_next else None

        logger.info(
            "history.page",
            extra={"user_id": user_id, "count": len(items), "has_next": has_next},
        )
        dtos = [to_response(item) for item in items]
        return {
            "userId": user_id,
            "items": dtos,
            "count": len(dtos),
            "nextCursor": next_cursor,
        }
