# app/payouts/state_machine.py
from app.errors import InvalidStateError

PENDING = "PENDING"
PAID = "PAID"

ALLOWED = {
    PENDING: {PAID},
    PAID: set(),
}


def assert_transition(old: str, new: str) -> None:
    if new not in ALLOWED.get(old, set()):
        raise InvalidStateError(f"Illegal payout transition: {old} -> {new}")
