# services/redaction.py
"""
Masks personal data before it reaches a log line.

Profiles carry emails and contact numbers; payment events can echo
processor keys. Anything that looks like a credential blanks the whole value.
"""
from __future__ import annotations

import re
from typing import Any


_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])([A-Za-z0-9._%+-]*)(@[A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
_PHONE_RE = re.compile(r"\+?\d[\d \-]{6,}\d")

_CREDENTIAL_MARKERS = ("access_token", "bearer ", "sk_live_", "sk_test_", "rk_live_", "whsec_")

_SENSITIVE_KEY_MARKERS = (
    "token",
    "authorization",
    "secret",
    "signature",
    "password",
    "cookie",
)


def _mask_email(match: re.Match) -> str:
    return f"{match.group(1)}***{match.group(3)}"


def _mask_phone(match: re.Match) -> str:
    digits = match.group(0)
    return f"{digits[:3]}****{digits[-2:]}"


def redact_text(value: str) -> str:
    lowered = value.lower()
    if any(marker in lowered for marker in _CREDENTIAL_MARKERS):
        return "[REDACTED]"

    masked = _EMAIL_RE.sub(_mask_email, value)
    return _PHONE_RE.sub(_mask_phone, masked)


def _is_sensitive_key(key: str) -> bool:
    key_l = (key or "").lower()
    return any(marker in key_l for marker in _SENSITIVE_KEY_MARKERS)


def redact_headers(headers: dict[str, Any]) -> dict[str, Any]:
    return {k: ("***" if _is_sensitive_key(k) else v) for k, v in headers.items()}
