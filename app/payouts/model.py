from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from datetime import datetime


@dataclass(frozen=True)
class Payout:
    id: UUID
    assignment_id: UUID
    tutor_id: UUID
    amount_cents: int
    status: str
    initiated_at: datetime
    paid_at: Optional[datetime]
