# services/metrics.py
"""
Process-local counters rendered in Prometheus text format.

Good enough for a single API instance; a multi-worker deployment sees
per-worker series.
"""
from __future__ import annotations

from threading import Lock
from typing import Tuple


_lock = Lock()
_counters: dict[str, dict[Tuple[Tuple[str, str], ...], int]] = {}

HELP = {
    "http_requests_total": "HTTP requests by route template and status.",
    "assignment_transitions_total": "Assignment status changes that won their conditional update.",
    "webhook_events_total": "Payment processor webhook deliveries.",
    "payment_amount_mismatch_total": "Confirmed payments whose charged amount differed from the assignment fee.",
    "payouts_created_total": "Tutor payouts recorded on completion.",
}


def _key(labels: dict[str, str] | None) -> Tuple[Tuple[str, str], ...]:
    return tuple(sorted((labels or {}).items()))


def _inc(name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
    with _lock:
        series = _counters.setdefault(name, {})
        key = _key(labels)
        series[key] = series.get(key, 0) + int(value)


def increment_http_requests(route: str, status: int) -> None:
    _inc("http_requests_total", {"route": route, "status": str(status)})


def increment_assignment_transition(from_status: str, to_status: str) -> None:
    _inc("assignment_transitions_total", {"from": from_status, "to": to_status})


def increment_webhook_event(provider: str, signature_valid: bool, applied: bool) -> None:
    _inc(
        "webhook_events_total",
        {
            "provider": provider,
            "signature_valid": str(signature_valid).lower(),
            "applied": str(applied).lower(),
        },
    )


def increment_payment_amount_mismatch() -> None:
    _inc("payment_amount_mismatch_total")


def increment_payout_created() -> None:
    _inc("payouts_created_total")


def get_counter(name: str, labels: dict[str, str] | None = None) -> int:
    with _lock:
        return _counters.get(name, {}).get(_key(labels), 0)


def render_prometheus() -> str:
    lines: list[str] = []
    with _lock:
        for name in sorted(_counters):
            if name in HELP:
                lines.append(f"# HELP {name} {HELP[name]}")
            lines.append(f"# TYPE {name} counter")
            for labels, value in sorted(_counters[name].items()):
                label_str = ",".join(f'{k}="{v}"' for k, v in labels)
                lines.append(f"{name}{{{label_str}}} {value}" if label_str else f"{name} {value}")
    return "\n".join(lines) + ("\n" if lines else "")
