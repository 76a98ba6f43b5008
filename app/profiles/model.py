from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID
from datetime import datetime

ROLES = ("STUDENT", "TUTOR", "ADMIN")


@dataclass(frozen=True)
class User:
    id: UUID
    email: str
    password_hash: str
    role: str
    created_at: datetime


@dataclass(frozen=True)
class StudentProfile:
    id: UUID
    user_id: UUID
    name: str
    contact_number: str
    preferred_subjects: list[str] = field(default_factory=list)
    budget_min_cents: Optional[int] = None
    budget_max_cents: Optional[int] = None


@dataclass(frozen=True)
class TutorProfile:
    id: UUID
    user_id: UUID
    name: str
    contact_number: str
    subjects_taught: list[str] = field(default_factory=list)
    experience_years: int = 0
    default_hourly_rate_cents: int = 0
    availability: dict[str, Any] = field(default_factory=dict)
