from __future__ import annotations
"""server/play_history/application/services/anonymization_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Anonymisation (droit à l'oubli) : remplace `user_id` par un placeholder fixe
(ANONYMIZED_USER_ID, "user-deleted" par défaut) sur TOUTES les lectures de
l'utilisateur, en un seul UPDATE en masse.

Notes :
- irréversible ; le placeholder agrège indistinctement tous les utilisateurs
  anonymisés (but : non-rattachement, pas de tombstone par utilisateur) ;
- synchrone : on ne rend la main qu'après commit ;
- aucune atomicité multi-lignes garantie aux lecteurs concurrents : une
  lecture en parallèle peut voir un mélange d'anciens et de nouveaux user_id.
"""

import logging
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from play_history.core.config import settings
from play_history.core.errors import ServerError, ValidationError
from play_history.infrastructure.persistence.database.session import open_session
from play_history.infrastructure.persistence.repositories.play_event_repository import PlayEventRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnonymizationResult:
    user_id: str
    matched: int
    modified: int


class AnonymizationService:
    def __init__(
        self,
        session_factory: Optional[Callable[[], ContextManager[Session]]] = None,
        *,
        placeholder: Optional[str] = None,
    ) -> None:
        self.session_factory = session_factory or open_session
        self.placeholder = placeholder or settings.ANONYMIZED_USER_ID

    def anonymize(self, user_id: str) -> AnonymizationResult:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("userId is required")

        logger.info("anonymize.start", extra={"user_id": user_id})
        try:
            with self.session_factory() as session:
                matched = PlayEventRepository(session).anonymize_user(user_id, self.placeholder)
                session.commit()
        except SQLAlchemyError as exc:
            logger.exception("anonymize.store_error", extra={"user_id": user_id})
            raise ServerError("Anonymization failed") from exc

        # Anonymiser le placeholder lui-même ne change aucune valeur
        modified = 0 if user_id == self.placeholder else matched
        logger.info(
            "anonymize.done",
            extra={"user_id": user_id, "matched": matched, "modified": modified},
        )
        return AnonymizationResult(user_id=user_id, matched=matched, modified=modified)
