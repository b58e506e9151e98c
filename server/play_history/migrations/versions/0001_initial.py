from __future__ import annotations
"""server/play_history/migrations/versions/0001_initial.py
~~~~~~~~~~~~~~~~~~~~~~~~
Schéma initial : table play_events + index.

- uq_play_events_event_hash : unicité de l'empreinte (déduplication)
- ix_play_events_user_ts    : historique par utilisateur (timestamp DESC)
- ix_play_events_content_id : recherches par contenu
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "play_events",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("content_id", sa.String(255), nullable=False),
        sa.Column("device", sa.String(100), nullable=False),
        sa.Column("timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("playback_duration", sa.Integer(), nullable=False),
        sa.Column("event_hash", sa.String(64), nullable=False),
        sa.Column("idempotency_key", sa.String(64), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint("playback_duration >= 0", name="ck_play_events_duration_positive"),
    )
    op.create_index("uq_play_events_event_hash", "play_events", ["event_hash"], unique=True)
    op.create_index("ix_play_events_user_ts", "play_events", ["user_id", sa.text('"timestamp" DESC')])
    op.create_index("ix_play_events_content_id", "play_events", ["content_id"])


def downgrade() -> None:
    op.drop_index("ix_play_events_content_id", table_name="play_events")
    op.drop_index("ix_play_events_user_ts", table_name="play_events")
    op.drop_index("uq_play_events_event_hash", table_name="play_events")
    op.drop_table("play_events")
