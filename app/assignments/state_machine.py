# app/assignments/state_machine.py
from __future__ import annotations

from app.errors import InvalidStateError

PENDING_OFFER = "PENDING_OFFER"
TUTOR_ACCEPTED = "TUTOR_ACCEPTED"
TUTOR_DECLINED = "TUTOR_DECLINED"
PAYMENT_PENDING = "PAYMENT_PENDING"
IN_PROGRESS = "IN_PROGRESS"
COMPLETED = "COMPLETED"
CANCELED = "CANCELED"

ALL_STATUSES = (
    PENDING_OFFER,
    TUTOR_ACCEPTED,
    TUTOR_DECLINED,
    PAYMENT_PENDING,
    IN_PROGRESS,
    COMPLETED,
    CANCELED,
)

ALLOWED = {
    PENDING_OFFER: {TUTOR_ACCEPTED, TUTOR_DECLINED, CANCELED},
    TUTOR_ACCEPTED: {PAYMENT_PENDING, CANCELED},
    PAYMENT_PENDING: {IN_PROGRESS, CANCELED},
    IN_PROGRESS: {COMPLETED, CANCELED},
    TUTOR_DECLINED: set(),
    COMPLETED: set(),
    CANCELED: set(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED.items() if not targets)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(old: str, new: str) -> bool:
    return new in ALLOWED.get(old, set())


def assert_transition(old: str, new: str) -> None:
    if not can_transition(old, new):
        raise InvalidStateError(f"Illegal assignment transition: {old} -> {new}")
