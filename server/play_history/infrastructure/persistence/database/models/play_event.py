from __future__ import annotations
"""server/play_history/infrastructure/persistence/database/models/play_event.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table play_events (append-only, une ligne par lecture remontée).

Invariants :
- `event_hash` est UNIQUE sur toute la table : c'est cette contrainte (et non
  un verrou applicatif) qui garantit la déduplication entre writers concurrents.
- `id` est croissant dans l'ordre d'insertion : il départage les lectures de
  même `timestamp` pour la pagination.
- Seul `user_id` est modifié après insertion (anonymisation).
"""

import datetime as dt

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from play_history.infrastructure.persistence.database.base import Base


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class PlayEvent(Base):
    __tablename__ = "play_events"

    __table_args__ = (
        CheckConstraint("playback_duration >= 0", name="ck_play_events_duration_positive"),
        Index("uq_play_events_event_hash", "event_hash", unique=True),
        Index("ix_play_events_content_id", "content_id"),
    )

    # SQLite n'auto-incrémente que les colonnes INTEGER PRIMARY KEY
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content_id: Mapped[str] = mapped_column(String(255), nullable=False)
    device: Mapped[str] = mapped_column(String(100), nullable=False)
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    playback_duration: Mapped[int] = mapped_column(Integer, nullable=False)
    event_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self) -> str:
        return f"<PlayEvent id={self.id} user={self.user_id!r} content={self.content_id!r}>"


# Scan historique par utilisateur (timestamp DESC)
Index("ix_play_events_user_ts", PlayEvent.user_id, PlayEvent.timestamp.desc())
