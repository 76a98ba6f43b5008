from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from datetime import datetime


@dataclass(frozen=True)
class Assignment:
    id: UUID
    student_id: UUID
    tutor_id: UUID
    subject: str
    total_fee_cents: int
    tutor_fee_cents: int
    platform_commission_cents: int
    status: str
    cancel_reason: Optional[str]
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Payment:
    id: UUID
    assignment_id: UUID
    amount_cents: int
    platform_fee_cents: int
    status: str
    external_ref: Optional[str]
    checkout_session_id: Optional[str]
    checkout_url: Optional[str]
    amount_mismatch: bool
    failure_reason: Optional[str]
    created_at: datetime
    paid_at: Optional[datetime]
