from __future__ import annotations
"""
server/play_history/application/services/idempotency.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Cache d'idempotence : clé client (X-Idempotency-Key) -> réponse d'origine.

Rôle :
    - Rejouer la même clé renvoie EXACTEMENT la réponse d'origine, sans
      nouvel accès au store.
    - Ce n'est PAS le mécanisme de déduplication : l'index unique sur
      `play_events.event_hash` reste la source de vérité.

Limite connue (conservée telle quelle) :
    - Aucune vérification que le payload rejoué est identique au payload
      d'origine : une clé réutilisée avec un autre payload renvoie la réponse
      d'origine.

Backends :
    - InMemoryIdempotencyStore : dict process-wide, TTL optionnel
      (par défaut aucune expiration). Pas de verrou : get/set sur un dict
      sont atomiques par clé, deux clés différentes ne se bloquent jamais.
      Deux écritures concurrentes sur la même clé : la dernière gagne.
    - RedisIdempotencyStore : partagé entre instances, TTL obligatoire.
"""

import json
import logging
import time
from typing import Any, Optional, Protocol

import redis

from play_history.core.config import Settings, settings as app_settings
from play_history.core.errors import ServerError

logger = logging.getLogger(__name__)


class IdempotencyStore(Protocol):
    """Capacité get/put dont dépend l'orchestrateur d'ingestion."""

    def get(self, key: str) -> Optional[dict[str, Any]]:
        ...

    def put(self, key: str, response: dict[str, Any]) -> None:
        ...


class InMemoryIdempotencyStore:
    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._ttl = float(ttl_seconds) if ttl_seconds else None
        # key -> (expires_at | None, response)
        self._entries: dict[str, tuple[Optional[float], dict[str, Any]]] = {}

    def get(self, key: str) -> Optional[dict[str, Any]]:
        item = self._entries.get(key)
        if item is None:
            return None
        expires_at, response = item
        if expires_at is not None and time.monotonic() >= expires_at:
            self._entries.pop(key, None)
            return None
        return response

    def put(self, key: str, response: dict[str, Any]) -> None:
        expires_at = time.monotonic() + self._ttl if self._ttl else None
        self._entries[key] = (expires_at, response)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisIdempotencyStore:
    def __init__(self, client: "redis.Redis", *, ttl_seconds: int, prefix: str = "idem:") -> None:
        self._r = client
        self._ttl = int(ttl_seconds)
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[dict[str, Any]]:
        try:
            raw = self._r.get(self._key(key))
        except redis.RedisError as exc:
            logger.error("idempotency.redis_error op=get error=%s", exc)
            raise ServerError("Idempotency cache unavailable") from exc
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    def put(self, key: str, response: dict[str, Any]) -> None:
        # SET ... EX : last-write-wins, pas de NX
        payload = json.dumps(response, separators=(",", ":"), ensure_ascii=False)
        try:
            self._r.set(self._key(key), payload, ex=self._ttl)
        except redis.RedisError as exc:
            # La ligne est déjà commitée : un retry de la même clé finira en Conflict
            logger.error("idempotency.redis_error op=put error=%s", exc)
            raise ServerError("Idempotency cache unavailable") from exc


def build_idempotency_store(cfg: Optional[Settings] = None) -> IdempotencyStore:
    """Instancie le backend choisi par IDEMPOTENCY_BACKEND."""
    cfg = cfg or app_settings
    if cfg.IDEMPOTENCY_BACKEND == "redis":
        logger.info("idempotency.backend", extra={"backend": "redis"})
        client = redis.Redis.from_url(cfg.REDIS_URL, decode_responses=True)
        return RedisIdempotencyStore(client, ttl_seconds=cfg.IDEMPOTENCY_REDIS_TTL_SECONDS)
    logger.info("idempotency.backend", extra={"backend": "memory"})
    return InMemoryIdempotencyStore(ttl_seconds=cfg.IDEMPOTENCY_TTL_SECONDS)


_store: Optional[IdempotencyStore] = None


def get_idempotency_store() -> IdempotencyStore:
    """Singleton process-wide (construit au premier appel)."""
    global _store
    if _store is None:
        _store = build_idempotency_store()
    return _store


def reset_idempotency_store(store: Optional[IdempotencyStore] = None) -> None:
    """Remplace (ou réinitialise) le singleton ; utilisé par les tests."""
    global _store
    _store = store
