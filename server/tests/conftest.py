# server/tests/conftest.py
"""
Conftest *global* pour toute la suite de tests.

Points clés :
- Pose des ENV sûres AVANT l'import de play_history.* (Settings() les lit à
  l'import) : DATABASE_URL SQLite in-memory, idempotence en mémoire.
- Pour les tests @unit uniquement :
  - Monte une DB SQLite in-memory partagée + Base.create_all.
  - Patch de la pile DB : get_session / open_session (module session + modules
    consommateurs qui ont figé la référence à l'import).
  - Réinitialise le cache d'idempotence process-wide.
  - Purge les tables après chaque test.
"""

import importlib
import os
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


# ============================================================================
# Helpers
# ============================================================================
def _is_unit(request: pytest.FixtureRequest) -> bool:
    """True si le test courant est marqué @pytest.mark.unit."""
    return request.node.get_closest_marker("unit") is not None


def pytest_configure(config) -> None:
    """S'exécute avant la collecte → parfait pour poser les ENV lues par Settings()."""
    os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    os.environ.setdefault("IDEMPOTENCY_BACKEND", "memory")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# UNIT-ONLY: DB SQLite in-memory partagée + Base.metadata.create_all
# ============================================================================
@pytest.fixture(scope="session")
def _sqlite_engine_unit():
    """
    Engine in-memory **partagé** entre connexions (StaticPool + check_same_thread=False).
    """
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    from play_history.infrastructure.persistence.database import base as db_base

    db_base.Base.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="session")
def _Session_unit(_sqlite_engine_unit):
    """Retourne un sessionmaker lié au moteur SQLite in-memory."""
    return sessionmaker(
        bind=_sqlite_engine_unit,
        future=True,
        autoflush=True,
        expire_on_commit=False,
    )


@pytest.fixture
def Session(request, _Session_unit):
    """
    Fournit un sessionmaker à utiliser comme `with Session() as s:` pour les tests unitaires.
    Sera *skippé* s'il est injecté dans un test non marqué @unit.
    """
    if not _is_unit(request):
        pytest.skip("Session fixture is only available for unit tests")
    return _Session_unit


@pytest.fixture
def session_factory(Session):
    """Fabrique de sessions au format attendu par les services (`with factory() as s:`)."""
    @contextmanager
    def _factory():
        with Session() as s:
            yield s
    return _factory


# Purge DB entre tests unitaires (évite les fuites d'état)
@pytest.fixture(autouse=True)
def _clear_db_between_unit_tests(request, _Session_unit):
    """
    Après chaque test unitaire, on supprime le contenu de toutes les tables.
    ⚠️ Générateur : doit 'yield' aussi hors unit.
    """
    if not _is_unit(request):
        yield
        return

    yield
    from play_history.infrastructure.persistence.database import base as db_base
    with _Session_unit() as s:
        for table in reversed(db_base.Base.metadata.sorted_tables):
            s.execute(table.delete())
        s.commit()


# ============================================================================
# UNIT-ONLY: cache d'idempotence neuf à chaque test
# ============================================================================
@pytest.fixture(autouse=True)
def _fresh_idempotency_store(request):
    if not _is_unit(request):
        yield
        return

    from play_history.application.services import idempotency

    idempotency.reset_idempotency_store(idempotency.InMemoryIdempotencyStore())
    yield
    idempotency.reset_idempotency_store(None)


# ============================================================================
# UNIT-ONLY: Patch DB (get_session + open_session)
# ============================================================================
@pytest.fixture(autouse=True)
def patch_db_stack_for_unit(request, monkeypatch, _Session_unit):
    """
    Rend *impossible* l'usage de Postgres pendant les tests unitaires.

    ⚠️ Les services importent `open_session` à l'import
    (`from ...session import open_session`) : on patche donc aussi ces modules
    *consommateurs*, sinon ils garderaient la référence d'origine.
    """
    if not _is_unit(request):
        return

    @contextmanager
    def _fake_open_session():
        with _Session_unit() as s:
            yield s

    sess_mod = importlib.import_module("play_history.infrastructure.persistence.database.session")
    monkeypatch.setattr(sess_mod, "open_session", _fake_open_session)
    monkeypatch.setattr(sess_mod, "get_session", lambda: _Session_unit())

    to_patch = [
        "play_history.application.services.ingestion_service",
        "play_history.application.services.history_service",
        "play_history.application.services.ranking_service",
        "play_history.application.services.anonymization_service",
    ]
    for modname in to_patch:
        m = importlib.import_module(modname)
        monkeypatch.setattr(m, "open_session", _fake_open_session)


# ============================================================================
# Payload factories
# ============================================================================
@pytest.fixture
def play_event_base_payload():
    return {
        "userId": "user123",
        "contentId": "movie456",
        "device": "mobile",
        "timestamp": "2025-09-30T12:00:00Z",
        "playbackDuration": 120,
    }


@pytest.fixture
def payload_factory(play_event_base_payload):
    def _factory(**overrides):
        data = {**play_event_base_payload}
        data.update(overrides)
        return data
    return _factory
