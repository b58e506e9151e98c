from __future__ import annotations
"""server/play_history/application/services/fingerprint.py
~~~~~~~~~~~~~~~~~~~~~~~~
Empreinte de contenu d'une lecture (event_hash).

Hash SHA-256 d'une sérialisation JSON compacte, ordre des champs FIXE, sans
sel : deux lectures sémantiquement identiques produisent toujours la même
empreinte, quel que soit le process ou le moment.
"""

import hashlib
import json
from typing import Any, Mapping

# Ordre de sérialisation (ne pas modifier : change toutes les empreintes)
FINGERPRINT_FIELDS = ("userId", "contentId", "device", "timestamp", "playbackDuration")


def _as_mapping(event: Any) -> Mapping[str, Any]:
    if isinstance(event, Mapping):
        return event
    if hasattr(event, "model_dump"):
        return event.model_dump()
    raise TypeError(f"unsupported event type for fingerprint: {type(event).__name__}")


def canonical_payload(event: Any) -> str:
    """JSON compact {userId, contentId, device, timestamp, playbackDuration}."""
    data = _as_mapping(event)
    norm = {field: data.get(field) for field in FINGERPRINT_FIELDS}
    return json.dumps(norm, separators=(",", ":"), ensure_ascii=False)


def compute_event_hash(event: Any) -> str:
    """Hash stable (hex, 64 caractères) des champs sémantiques de la lecture."""
    return hashlib.sha256(canonical_payload(event).encode("utf-8")).hexdigest()
