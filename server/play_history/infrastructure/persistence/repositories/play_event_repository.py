from __future__ import annotations
"""server/play_history/infrastructure/persistence/repositories/play_event_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Repository des lectures (play_events).

Principes :
- Le repo **reçoit** une Session SQLAlchemy gérée par l'appelant (service via
  `open_session()`, endpoint via `Depends(get_db)`).
- `create_if_absent(...)` est la seule méthode qui commit : l'insert doit être
  visible (ou rejeté par l'index unique) avant que le service ne réponde.
- `anonymize_user(...)` ne commit pas : c'est le rôle de l'appelant.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from play_history.infrastructure.persistence.database.models.play_event import PlayEvent


class PlayEventRepository:
    def __init__(self, session: Session):
        self.s = session

    # ------------------------------------------------------------------ #
    # Écriture
    # ------------------------------------------------------------------ #
    def create_if_absent(
        self,
        *,
        user_id: str,
        content_id: str,
        device: str,
        timestamp: dt.datetime,
        playback_duration: int,
        event_hash: str,
        idempotency_key: Optional[str] = None,
    ) -> Optional[PlayEvent]:
        """
        Insère une lecture. Retourne la ligne persistée, ou None si une ligne
        de même `event_hash` existe déjà (course perdue ou vrai doublon).

        Toute autre IntegrityError est relevée telle quelle.
        """
        event = PlayEvent(
            user_id=user_id,
            content_id=content_id,
            device=device,
            timestamp=timestamp,
            playback_duration=playback_duration,
            event_hash=event_hash,
            idempotency_key=idempotency_key,
        )
        try:
            self.s.add(event)
            self.s.commit()
        except IntegrityError:
            self.s.rollback()
            if self.get_by_hash(event_hash) is not None:
                return None
            raise
        return event

    def anonymize_user(self, user_id: str, placeholder: str) -> int:
        """
        UPDATE en masse (une seule requête) de `user_id` vers `placeholder`.
        Retourne le nombre de lignes touchées. Pas de commit ici.
        """
        res = self.s.execute(
            update(PlayEvent)
            .where(PlayEvent.user_id == user_id)
            .values(user_id=placeholder)
            .execution_options(synchronize_session=False)
        )
        return int(res.rowcount or 0)

    # ------------------------------------------------------------------ #
    # Lecture
    # ------------------------------------------------------------------ #
    def get(self, event_id: int) -> Optional[PlayEvent]:
        return self.s.get(PlayEvent, event_id)

    def get_by_hash(self, event_hash: str) -> Optional[PlayEvent]:
        return self.s.execute(
            select(PlayEvent).where(PlayEvent.event_hash == event_hash).limit(1)
        ).scalar_one_or_none()

    def count_by_user(self, user_id: str) -> int:
        return int(
            self.s.scalar(select(func.count()).select_from(PlayEvent).where(PlayEvent.user_id == user_id))
            or 0
        )

    def find_history(
        self,
        user_id: str,
        *,
        limit: int,
        after: Optional[PlayEvent] = None,
    ) -> list[PlayEvent]:
        """
        Lectures d'un utilisateur triées (timestamp DESC, id DESC).

        Renvoie jusqu'à `limit + 1` lignes : la ligne en trop sert uniquement à
        savoir s'il existe une page suivante (pas de requête COUNT séparée).

        `after` : ligne du curseur ; on reprend strictement après elle dans le
        même ordre total (keyset sur (timestamp, id)).
        """
        stmt = select(PlayEvent).where(PlayEvent.user_id == user_id)
        if after is not None:
            stmt = stmt.where(
                or_(
                    PlayEvent.timestamp < after.timestamp,
                    and_(PlayEvent.timestamp == after.timestamp, PlayEvent.id < after.id),
                )
            )
        stmt = stmt.order_by(PlayEvent.timestamp.desc(), PlayEvent.id.desc()).limit(limit + 1)
        return list(self.s.scalars(stmt).all())

    def most_watched(
        self,
        start: dt.datetime,
        end: dt.datetime,
        limit: int,
    ) -> list[tuple[str, int]]:
        """
        Compte une unité par lecture dans [start, end) et classe par
        (total DESC, content_id ASC). Le LIMIT s'applique après le GROUP BY
        complet : le tri porte sur les totaux définitifs.
        """
        total = func.count(PlayEvent.id).label("total_play_count")
        stmt = (
            select(PlayEvent.content_id, total)
            .where(PlayEvent.timestamp >= start, PlayEvent.timestamp < end)
            .group_by(PlayEvent.content_id)
            .order_by(total.desc(), PlayEvent.content_id.asc())
            .limit(limit)
        )
        return [(row.content_id, int(row.total_play_count)) for row in self.s.execute(stmt)]
