from __future__ import annotations
"""server/play_history/core/errors.py
~~~~~~~~~~~~~~~~~~~~~~~~
Erreurs typées du cœur (services).

Les services lèvent ces exceptions telles quelles ; la traduction en codes HTTP
est faite par la couche API (`play_history.api.v1.errors`).

- ValidationError : entrée invalide, détectée AVANT tout accès au store.
- ConflictError   : violation de l'unicité sur `event_hash` (vrai doublon
                    soumis sous une autre clé d'idempotence).
- ServerError     : store indisponible ou échec inattendu.
"""


class PlayHistoryError(Exception):
    """Base des erreurs du service."""

    status_code: int = 500

    def __init__(self, message: str = "", *, details: object | None = None) -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.details = details


class ValidationError(PlayHistoryError):
    """Entrée mal formée (payload, curseur, fenêtre temporelle, limite)."""

    status_code = 400


class ConflictError(PlayHistoryError):
    """Doublon sémantique : l'empreinte existe déjà en base."""

    status_code = 409


class ServerError(PlayHistoryError):
    """Base indisponible ou erreur non prévue."""

    status_code = 500
