# coding: utf-8
# server/play_history/core/utils/datetime.py
"""server/play_history/core/utils/datetime.py
~~~~~~~~~~~~~~~~~~~~~~~~
Utilitaires pour la gestion des dates et heures.

Convention du service :
- en entrée, des chaînes ISO-8601 *avec* fuseau (Z ou ±HH:MM) ;
- en base, des datetimes UTC ;
- en sortie, ISO-8601 UTC à la milliseconde avec suffixe Z
  (ex. "2025-09-30T12:00:00.000Z").
"""

from datetime import datetime, timezone
from typing import Optional


def parse_iso_utc(value: str) -> datetime:
    """
    Parse une chaîne ISO-8601 et la normalise en UTC.
    Lève ValueError si la chaîne est invalide, sans fuseau horaire ou hors
    de la plage représentable une fois ramenée en UTC.
    """
    if not isinstance(value, str):
        raise ValueError("timestamp must be an ISO-8601 string")
    raw = value.strip()
    if not raw or "T" not in raw:
        raise ValueError(f"invalid ISO-8601 datetime: {value!r}")
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        raise ValueError(f"ISO-8601 datetime must carry a timezone (e.g. 'Z'): {value!r}")
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError as exc:
        # ex. "0001-01-01T00:00:00+01:00" : l'instant UTC sort de [MINYEAR, MAXYEAR]
        raise ValueError(f"ISO-8601 datetime out of range: {value!r}") from exc


def ensure_utc(dt: datetime) -> datetime:
    """Datetime naïf => considéré UTC (cas SQLite) ; aware => converti en UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_z(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 UTC, précision milliseconde, suffixe Z."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
