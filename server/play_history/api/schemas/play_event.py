from __future__ import annotations
"""server/play_history/api/schemas/play_event.py
~~~~~~~~~~~~~~~~~~~~~~~~
Schémas lectures (requêtes / réponses).

`PlayEventCreate` est aussi le point de validation du cœur : le service
d'ingestion le réutilise pour valider un dict avant tout accès au store.
Le champ `timestamp` reste une *chaîne* (telle que soumise, trimée) car
l'empreinte de contenu est calculée sur la valeur d'origine.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from play_history.core.utils.datetime import parse_iso_utc


class PlayEventCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    userId: str = Field(min_length=1, max_length=255, examples=["user123"])
    contentId: str = Field(min_length=1, max_length=255, examples=["movie456"])
    device: str = Field(min_length=1, max_length=100, examples=["mobile"])
    timestamp: str = Field(examples=["2025-09-30T12:00:00Z"])
    playbackDuration: StrictInt = Field(ge=0, examples=[120])

    @field_validator("timestamp")
    @classmethod
    def _check_iso_utc(cls, v: str) -> str:
        try:
            parse_iso_utc(v)
        except ValueError as exc:
            raise ValueError(f"timestamp must be ISO-8601 with timezone (e.g. '2025-09-30T12:00:00Z'): {exc}")
        return v


class PlayEventOut(BaseModel):
    id: str
    userId: str
    contentId: str
    device: str
    timestamp: str
    playbackDuration: int


class PlayHistoryPage(BaseModel):
    userId: str
    items: list[PlayEventOut]
    count: int
    nextCursor: Optional[str] = None


class MostWatchedItem(BaseModel):
    contentId: str
    totalPlayCount: int


class MostWatchedResponse(BaseModel):
    items: list[MostWatchedItem]
    startDate: str
    endDate: str


class AnonymizationOut(BaseModel):
    status: str = "anonymized"
    userId: str
    matched: int
    modified: int
