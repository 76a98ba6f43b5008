# app/profiles/codec.py
"""
Subject lists and tutor availability are stored as JSON text columns.

Reads never fail: rows written by older clients may hold NULL, '', or
garbage, and a bad value must not take down a listing endpoint.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

logger = logging.getLogger("tutormatch.profiles")


def _loads(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    if isinstance(raw, (list, dict)):
        # jsonb columns come back already decoded
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.warning("profile_json_decode_failed sample=%r", text[:40])
        return None


def decode_subjects(raw: Optional[str]) -> list[str]:
    value = _loads(raw)
    if not isinstance(value, list):
        return []
    return normalize_subjects(v for v in value if isinstance(v, str))


def normalize_subjects(subjects: Iterable[str] | None) -> list[str]:
    """Strip, drop blanks and de-duplicate (case-insensitive), keeping first-seen order."""
    out: list[str] = []
    seen: set[str] = set()
    for s in subjects or ():
        name = (s or "").strip()
        key = name.casefold()
        if not name or key in seen:
            continue
        seen.add(key)
        out.append(name)
    return out


def encode_subjects(subjects: Iterable[str] | None) -> str:
    return json.dumps(normalize_subjects(subjects))


def decode_availability(raw: Optional[str]) -> dict[str, Any]:
    value = _loads(raw)
    return value if isinstance(value, dict) else {}


def encode_availability(availability: dict[str, Any] | None) -> str:
    return json.dumps(availability or {}, sort_keys=True, default=str)
