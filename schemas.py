# schemas.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, EmailStr, model_validator
from uuid import UUID
from datetime import datetime
from typing import Any, Optional, List, Literal

RoleName = Literal["STUDENT", "TUTOR", "ADMIN"]

# money columns are bigint
MAX_CENTS = 2**63 - 1


# -------- PROFILES --------
class StudentProfileIn(BaseModel):
    name: str = ""
    contact_number: str = ""
    preferred_subjects: List[str] = Field(default_factory=list)
    budget_min_cents: Optional[int] = Field(default=None, ge=0)
    budget_max_cents: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _budget_range(self):
        if (
            self.budget_min_cents is not None
            and self.budget_max_cents is not None
            and self.budget_min_cents > self.budget_max_cents
        ):
            raise ValueError("budget_min_cents must be <= budget_max_cents")
        return self


class TutorProfileIn(BaseModel):
    name: str = ""
    contact_number: str = ""
    subjects_taught: List[str] = Field(default_factory=list)
    experience_years: int = Field(default=0, ge=0)
    default_hourly_rate_cents: int = Field(default=0, ge=0)
    availability: dict[str, Any] = Field(default_factory=dict)


class StudentProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    contact_number: str
    preferred_subjects: List[str]
    budget_min_cents: Optional[int] = None
    budget_max_cents: Optional[int] = None


class TutorProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    contact_number: str
    subjects_taught: List[str]
    experience_years: int
    default_hourly_rate_cents: int
    availability: dict[str, Any]


# -------- AUTH --------
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    role: Literal["STUDENT", "TUTOR"]
    profile: dict[str, Any] = Field(default_factory=dict)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: UUID
    email: str
    role: RoleName
    created_at: datetime
    profile: Optional[StudentProfileOut | TutorProfileOut] = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


# -------- ADMIN DIRECTORY --------
class StudentListItem(StudentProfileOut):
    email: str


class TutorListItem(TutorProfileOut):
    email: str


# -------- ASSIGNMENTS --------
class AssignmentCreateRequest(BaseModel):
    student_id: UUID
    tutor_id: UUID
    subject: str
    total_fee_cents: int = Field(le=MAX_CENTS)
    tutor_fee_cents: int = Field(le=MAX_CENTS)


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    assignment_id: UUID
    amount_cents: int
    platform_fee_cents: int
    status: str
    external_ref: Optional[str] = None
    checkout_url: Optional[str] = None
    amount_mismatch: bool = False
    failure_reason: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    tutor_id: UUID
    subject: str
    total_fee_cents: int
    tutor_fee_cents: int
    platform_commission_cents: int
    status: str
    cancel_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    student_name: Optional[str] = None
    tutor_name: Optional[str] = None
    payment: Optional[PaymentOut] = None


class PayoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    assignment_id: UUID
    tutor_id: UUID
    amount_cents: int
    status: str
    initiated_at: datetime
    paid_at: Optional[datetime] = None


class CompleteResponse(BaseModel):
    assignment: AssignmentOut
    payout: PayoutOut


class ExpirePendingResponse(BaseModel):
    cutoff: datetime
    expired: List[UUID]


class StatsResponse(BaseModel):
    total_users: int
    total_students: int
    total_tutors: int
    total_assignments: int
    active_assignments: int
    pending_payments: int
    assignments_by_status: dict[str, int]
    total_revenue_cents: int


# -------- CHECKOUT --------
class CheckoutSessionRequest(BaseModel):
    assignment_id: UUID


class CheckoutSessionResponse(BaseModel):
    assignment_id: UUID
    status: str
    session_id: str
    session_url: Optional[str] = None
