# server/tests/integration/test_ingest_concurrency.py
"""
Course entre writers concurrents sur le même contenu (clés différentes) :
l'index unique sur event_hash doit laisser passer exactement UN insert, les
autres repartent en Conflict. Aucun doublon en base.

SQLite fichier (et non in-memory) : chaque thread ouvre sa propre connexion.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from play_history.application.services.idempotency import InMemoryIdempotencyStore
from play_history.application.services.ingestion_service import IngestionService
from play_history.core.errors import ConflictError
from play_history.infrastructure.persistence.database.base import Base
from play_history.infrastructure.persistence.database.models.play_event import PlayEvent

pytestmark = pytest.mark.integration

WRITERS = 8


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'plays.sqlite'}",
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    Local = sessionmaker(bind=engine, future=True, expire_on_commit=False)

    @contextmanager
    def _factory():
        with Local() as s:
            yield s

    yield _factory, Local
    engine.dispose()


def test_concurrent_duplicates_single_winner(file_session_factory):
    factory, Local = file_session_factory
    service = IngestionService(store=InMemoryIdempotencyStore(), session_factory=factory)
    payload = {
        "userId": "racer",
        "contentId": "movie-1",
        "device": "tv",
        "timestamp": "2025-09-30T12:00:00Z",
        "playbackDuration": 42,
    }
    barrier = threading.Barrier(WRITERS)

    def _submit(i):
        barrier.wait()
        try:
            return "ok", service.submit(payload, f"key-{i}")
        except ConflictError:
            return "conflict", None

    with ThreadPoolExecutor(max_workers=WRITERS) as pool:
        results = list(pool.map(_submit, range(WRITERS)))

    outcomes = [r[0] for r in results]
    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == WRITERS - 1

    with Local() as s:
        assert s.scalar(select(func.count()).select_from(PlayEvent)) == 1


def test_concurrent_replays_same_key_store_one_row(file_session_factory):
    """Même clé en rafale : au plus un insert ; les perdants voient Conflict ou la réponse cachée."""
    factory, Local = file_session_factory
    service = IngestionService(store=InMemoryIdempotencyStore(), session_factory=factory)
    payload = {
        "userId": "racer",
        "contentId": "movie-2",
        "device": "web",
        "timestamp": "2025-09-30T13:00:00Z",
        "playbackDuration": 7,
    }
    barrier = threading.Barrier(4)

    def _submit(_):
        barrier.wait()
        try:
            return service.submit(payload, "same-key")
        except ConflictError:
            return None

    with ThreadPoolExecutor(max_workers=4) as pool:
        responses = [r for r in pool.map(_submit, range(4)) if r is not None]

    assert responses
    assert len({r["id"] for r in responses}) == 1
    with Local() as s:
        assert s.scalar(select(func.count()).select_from(PlayEvent)) == 1
