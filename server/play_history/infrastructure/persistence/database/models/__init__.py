from __future__ import annotations
"""server/play_history/infrastructure/persistence/database/models/__init__.py
~~~~~~~~~~~~~~~~~~~~~~~~
Modèles ORM (register for Alembic).
"""

from .play_event import PlayEvent

__all__ = ["PlayEvent"]
