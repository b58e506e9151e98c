from __future__ import annotations
"""
server/play_history/application/services/ingestion_service.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Service d’orchestration de l’ingestion des lectures.

Rôle :
    - Valider le payload (PlayEventCreate) AVANT tout accès cache / store
    - Rejouer la réponse d’origine si la clé d’idempotence est connue
    - Calculer l’empreinte de contenu (event_hash)
    - Insérer la lecture ; l’index unique sur event_hash tranche les courses
      entre writers concurrents (un gagnant, les autres en Conflict)
    - Construire la réponse depuis la ligne persistée puis la mémoriser

Ce service est pensé pour être appelé depuis l’endpoint FastAPI :

    def post_play(...):
        return IngestionService().submit(payload, x_idempotency_key)

Si le process tombe entre l’insert et la mise en cache, un retry avec la même
clé ré-essaie l’insert, qui échoue sur la contrainte : Conflict, jamais de
doublon en base.
"""

import logging
from typing import Any, Callable, ContextManager, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from play_history.api.schemas.play_event import PlayEventCreate
from play_history.application.services.fingerprint import compute_event_hash
from play_history.application.services.idempotency import IdempotencyStore, get_idempotency_store
from play_history.core.errors import ConflictError, ServerError, ValidationError
from play_history.core.utils.datetime import parse_iso_utc, to_iso_z
from play_history.infrastructure.persistence.database.models.play_event import PlayEvent
from play_history.infrastructure.persistence.database.session import open_session
from play_history.infrastructure.persistence.repositories.play_event_repository import PlayEventRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]

# Taille de la colonne play_events.idempotency_key
MAX_IDEMPOTENCY_KEY_LENGTH = 64


def to_response(event: PlayEvent) -> dict[str, Any]:
    """Réponse standard d’une lecture persistée (id string, timestamp ISO Z)."""
    return {
        "id": str(event.id),
        "userId": event.user_id,
        "contentId": event.content_id,
        "device": event.device,
        "timestamp": to_iso_z(event.timestamp),
        "playbackDuration": event.playback_duration,
    }


def validate_event(event: Any) -> PlayEventCreate:
    if isinstance(event, PlayEventCreate):
        return event
    try:
        return PlayEventCreate.model_validate(event)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid play event payload",
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


class IngestionService:
    def __init__(
        self,
        store: Optional[IdempotencyStore] = None,
        session_factory: Optional[SessionFactory] = None,
    ) -> None:
        self.store = store if store is not None else get_idempotency_store()
        self.session_factory = session_factory or open_session

    def submit(self, event: Any, idempotency_key: str) -> dict[str, Any]:
        """
        Soumission dédupliquée d’une lecture.

        Retour :
          - la réponse d’origine si `idempotency_key` a déjà été servie,
          - sinon la réponse construite depuis la ligne insérée.

        Exceptions :
          - ValidationError : payload invalide, clé vide ou trop longue (store non touché),
          - ConflictError   : même contenu déjà soumis sous une autre clé,
          - ServerError     : base indisponible.
        """
        # -------------------------------------------------------------------
        # 0) Validation (avant cache et store)
        # -------------------------------------------------------------------
        if not isinstance(idempotency_key, str) or not idempotency_key.strip():
            raise ValidationError("Idempotency key is required")
        if len(idempotency_key) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise ValidationError(f"Idempotency key must be at most {MAX_IDEMPOTENCY_KEY_LENGTH} characters")
        payload = validate_event(event)

        # -------------------------------------------------------------------
        # 1) Rejeu : clé déjà servie -> réponse d’origine, aucun accès store
        # -------------------------------------------------------------------
        cached = self.store.get(idempotency_key)
        if cached is not None:
            logger.info("ingest.replay", extra={"idempotency_key": idempotency_key})
            return cached

        # -------------------------------------------------------------------
        # 2) Empreinte de contenu (sur le timestamp tel que soumis)
        # -------------------------------------------------------------------
        event_hash = compute_event_hash(payload)

        # -------------------------------------------------------------------
        # 3) Insert ; l’index unique tranche les doublons
        # -------------------------------------------------------------------
        try:
            with self.session_factory() as session:
                created = PlayEventRepository(session).create_if_absent(
                    user_id=payload.userId,
                    content_id=payload.contentId,
                    device=payload.device,
                    timestamp=parse_iso_utc(payload.timestamp),
                    playback_duration=payload.playbackDuration,
                    event_hash=event_hash,
                    idempotency_key=idempotency_key,
                )
                if created is not None:
                    response = to_response(created)
        except SQLAlchemyError as exc:
            logger.exception("ingest.store_error", extra={"idempotency_key": idempotency_key})
            raise ServerError("Event store unavailable") from exc

        if created is None:
            logger.info(
                "ingest.conflict",
                extra={"event_hash": event_hash, "idempotency_key": idempotency_key},
            )
            raise ConflictError(
                "A uniqueness constraint was violated. This play event may have been submitted previously.",
                details={"eventHash": event_hash},
            )

        # -------------------------------------------------------------------
        # 4) Mémorisation de la réponse pour les rejeux
        # -------------------------------------------------------------------
        self.store.put(idempotency_key, response)
        logger.info(
            "ingest.accepted",
            extra={"event_id": response["id"], "user_id": payload.userId, "idempotency_key": idempotency_key},
        )
        return response
