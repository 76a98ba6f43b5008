from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from app.errors import ConflictError, NotFoundError
from app.payouts import state_machine as sm
from app.payouts.model import Payout
from app.store import Store

logger = logging.getLogger("tutormatch.payouts")


def mark_payout_paid(store: Store, payout_id: UUID, *, actor_user_id: Optional[UUID] = None) -> Payout:
    payout = store.get_payout(payout_id)
    if payout is None:
        raise NotFoundError("Payout not found")

    sm.assert_transition(payout.status, sm.PAID)

    if not store.transition_payout(payout.id, from_status=payout.status, to_status=sm.PAID):
        raise ConflictError("Payout was modified by a concurrent request")

    if actor_user_id is not None:
        store.write_audit_log(
            actor_user_id=actor_user_id,
            action="PAYOUT_MARKED_PAID",
            target_id=str(payout.id),
            metadata={"assignment_id": str(payout.assignment_id), "amount_cents": payout.amount_cents},
        )

    logger.info(
        "payout_paid payout_id=%s assignment_id=%s amount_cents=%s",
        payout.id,
        payout.assignment_id,
        payout.amount_cents,
    )
    return store.get_payout(payout.id)
