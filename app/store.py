# app/store.py
"""
Data access for the marketplace.

`Store` is the contract the ledger and the routes depend on. `PostgresStore`
wraps one pooled psycopg2 connection for the lifetime of a request; the
surrounding `db.get_conn()` block owns commit/rollback.

Every status change is a compare-and-set (`... WHERE id = %s AND status = %s`)
and reports whether it won.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Protocol
from uuid import UUID

import psycopg2.errors
from psycopg2.extras import Json, RealDictCursor

from app.assignments.model import Assignment, Payment
from app.errors import ConflictError
from app.payouts.model import Payout
from app.profiles import codec
from app.profiles.model import StudentProfile, TutorProfile, User


class Store(Protocol):
    # users / profiles
    def get_user(self, user_id: UUID) -> Optional[User]: ...
    def get_user_by_email(self, email: str) -> Optional[User]: ...
    def create_user(self, *, email: str, password_hash: str, role: str) -> User: ...
    def list_users(self) -> list[User]: ...
    def count_users_by_role(self) -> dict[str, int]: ...
    def set_user_role(self, user_id: UUID, role: str) -> bool: ...

    def create_student_profile(self, *, user_id: UUID, name: str, contact_number: str,
                               preferred_subjects: list[str], budget_min_cents: Optional[int],
                               budget_max_cents: Optional[int]) -> StudentProfile: ...
    def create_tutor_profile(self, *, user_id: UUID, name: str, contact_number: str,
                             subjects_taught: list[str], experience_years: int,
                             default_hourly_rate_cents: int, availability: dict[str, Any]) -> TutorProfile: ...
    def update_student_profile(self, user_id: UUID, **fields: Any) -> Optional[StudentProfile]: ...
    def update_tutor_profile(self, user_id: UUID, **fields: Any) -> Optional[TutorProfile]: ...
    def get_student_profile(self, profile_id: UUID) -> Optional[StudentProfile]: ...
    def get_tutor_profile(self, profile_id: UUID) -> Optional[TutorProfile]: ...
    def get_student_profile_by_user(self, user_id: UUID) -> Optional[StudentProfile]: ...
    def get_tutor_profile_by_user(self, user_id: UUID) -> Optional[TutorProfile]: ...
    def list_students(self) -> list[tuple[User, StudentProfile]]: ...
    def list_tutors(self) -> list[tuple[User, TutorProfile]]: ...

    # assignments
    def insert_assignment(self, *, student_id: UUID, tutor_id: UUID, subject: str, total_fee_cents: int,
                          tutor_fee_cents: int, platform_commission_cents: int, status: str) -> Assignment: ...
    def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]: ...
    def list_assignments(self, *, student_id: Optional[UUID] = None, tutor_id: Optional[UUID] = None,
                         statuses: Optional[Iterable[str]] = None,
                         exclude_statuses: Optional[Iterable[str]] = None) -> list[Assignment]: ...
    def transition_assignment(self, assignment_id: UUID, *, from_status: str, to_status: str,
                              cancel_reason: Optional[str] = None) -> bool: ...
    def count_assignments_by_status(self) -> dict[str, int]: ...

    # payments
    def insert_payment(self, *, assignment_id: UUID, amount_cents: int) -> Payment: ...
    def get_payment_by_assignment(self, assignment_id: UUID) -> Optional[Payment]: ...
    def attach_checkout_session(self, payment_id: UUID, *, session_id: str, checkout_url: Optional[str]) -> None: ...
    def mark_payment_succeeded(self, assignment_id: UUID, *, amount_cents: int, platform_fee_cents: int,
                               external_ref: Optional[str], amount_mismatch: bool) -> bool: ...
    def mark_payment_failed(self, assignment_id: UUID, *, reason: str) -> bool: ...
    def list_payments(self, *, student_id: Optional[UUID] = None) -> list[Payment]: ...
    def sum_platform_fees_succeeded(self) -> int: ...
    def list_stale_payment_assignments(self, *, created_before: datetime) -> list[UUID]: ...

    # payouts
    def insert_payout_if_absent(self, *, assignment_id: UUID, tutor_id: UUID,
                                amount_cents: int) -> tuple[Payout, bool]: ...
    def get_payout(self, payout_id: UUID) -> Optional[Payout]: ...
    def list_payouts(self, *, tutor_id: Optional[UUID] = None) -> list[Payout]: ...
    def transition_payout(self, payout_id: UUID, *, from_status: str, to_status: str) -> bool: ...

    # audit
    def write_audit_log(self, *, actor_user_id: Optional[UUID], action: str, target_id: Optional[str],
                        metadata: Optional[dict[str, Any]] = None) -> None: ...


# ==========================================================
# Row mappers
# ==========================================================

def _user(row: dict) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=row["role"],
        created_at=row["created_at"],
    )


def _student(row: dict) -> StudentProfile:
    return StudentProfile(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"] or "",
        contact_number=row["contact_number"] or "",
        preferred_subjects=codec.decode_subjects(row.get("preferred_subjects")),
        budget_min_cents=row.get("budget_min_cents"),
        budget_max_cents=row.get("budget_max_cents"),
    )


def _tutor(row: dict) -> TutorProfile:
    return TutorProfile(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"] or "",
        contact_number=row["contact_number"] or "",
        subjects_taught=codec.decode_subjects(row.get("subjects_taught")),
        experience_years=int(row.get("experience_years") or 0),
        default_hourly_rate_cents=int(row.get("default_hourly_rate_cents") or 0),
        availability=codec.decode_availability(row.get("availability")),
    )


def _assignment(row: dict) -> Assignment:
    return Assignment(
        id=row["id"],
        student_id=row["student_id"],
        tutor_id=row["tutor_id"],
        subject=row["subject"],
        total_fee_cents=int(row["total_fee_cents"]),
        tutor_fee_cents=int(row["tutor_fee_cents"]),
        platform_commission_cents=int(row["platform_commission_cents"]),
        status=row["status"],
        cancel_reason=row.get("cancel_reason"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _payment(row: dict) -> Payment:
    return Payment(
        id=row["id"],
        assignment_id=row["assignment_id"],
        amount_cents=int(row["amount_cents"]),
        platform_fee_cents=int(row.get("platform_fee_cents") or 0),
        status=row["status"],
        external_ref=row.get("external_ref"),
        checkout_session_id=row.get("checkout_session_id"),
        checkout_url=row.get("checkout_url"),
        amount_mismatch=bool(row.get("amount_mismatch")),
        failure_reason=row.get("failure_reason"),
        created_at=row["created_at"],
        paid_at=row.get("paid_at"),
    )


def _payout(row: dict) -> Payout:
    return Payout(
        id=row["id"],
        assignment_id=row["assignment_id"],
        tutor_id=row["tutor_id"],
        amount_cents=int(row["amount_cents"]),
        status=row["status"],
        initiated_at=row["initiated_at"],
        paid_at=row.get("paid_at"),
    )


_STUDENT_COLS = "id, user_id, name, contact_number, preferred_subjects, budget_min_cents, budget_max_cents"
_TUTOR_COLS = (
    "id, user_id, name, contact_number, subjects_taught, experience_years, "
    "default_hourly_rate_cents, availability"
)
_ASSIGNMENT_COLS = (
    "id, student_id, tutor_id, subject, total_fee_cents, tutor_fee_cents, "
    "platform_commission_cents, status, cancel_reason, created_at, updated_at"
)
_PAYMENT_COLS = (
    "id, assignment_id, amount_cents, platform_fee_cents, status, external_ref, "
    "checkout_session_id, checkout_url, amount_mismatch, failure_reason, created_at, paid_at"
)
_PAYOUT_COLS = "id, assignment_id, tutor_id, amount_cents, status, initiated_at, paid_at"

_STUDENT_UPDATABLE = {"name", "contact_number", "preferred_subjects", "budget_min_cents", "budget_max_cents"}
_TUTOR_UPDATABLE = {
    "name", "contact_number", "subjects_taught", "experience_years",
    "default_hourly_rate_cents", "availability",
}


class PostgresStore:
    def __init__(self, conn):
        self.conn = conn

    # ------------------------------------------------------
    # helpers
    # ------------------------------------------------------

    def _one(self, sql: str, params: tuple = ()) -> Optional[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return cur.fetchone()

    def _all(self, sql: str, params: tuple = ()) -> list[dict]:
        with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return list(cur.fetchall())

    def _rowcount(self, sql: str, params: tuple = ()) -> int:
        with self.conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    # ------------------------------------------------------
    # users / profiles
    # ------------------------------------------------------

    def get_user(self, user_id: UUID) -> Optional[User]:
        row = self._one(
            "SELECT id, email, password_hash, role, created_at FROM app.users WHERE id = %s::uuid",
            (str(user_id),),
        )
        return _user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        row = self._one(
            "SELECT id, email, password_hash, role, created_at FROM app.users WHERE lower(email) = lower(%s)",
            (email,),
        )
        return _user(row) if row else None

    def create_user(self, *, email: str, password_hash: str, role: str) -> User:
        try:
            row = self._one(
                """
                INSERT INTO app.users (email, password_hash, role)
                VALUES (%s, %s, %s)
                RETURNING id, email, password_hash, role, created_at
                """,
                (email, password_hash, role),
            )
        except psycopg2.errors.UniqueViolation:
            raise ConflictError("EMAIL_TAKEN")
        return _user(row)

    def list_users(self) -> list[User]:
        rows = self._all(
            "SELECT id, email, password_hash, role, created_at FROM app.users ORDER BY created_at DESC"
        )
        return [_user(r) for r in rows]

    def count_users_by_role(self) -> dict[str, int]:
        rows = self._all("SELECT role, COUNT(*) AS n FROM app.users GROUP BY role")
        return {r["role"]: int(r["n"]) for r in rows}

    def set_user_role(self, user_id: UUID, role: str) -> bool:
        n = self._rowcount("UPDATE app.users SET role = %s WHERE id = %s::uuid", (role, str(user_id)))
        return n == 1

    def create_student_profile(self, *, user_id, name, contact_number, preferred_subjects,
                               budget_min_cents, budget_max_cents) -> StudentProfile:
        row = self._one(
            f"""
            INSERT INTO app.student_profiles
              (user_id, name, contact_number, preferred_subjects, budget_min_cents, budget_max_cents)
            VALUES (%s::uuid, %s, %s, %s, %s, %s)
            RETURNING {_STUDENT_COLS}
            """,
            (
                str(user_id),
                name,
                contact_number,
                codec.encode_subjects(preferred_subjects),
                budget_min_cents,
                budget_max_cents,
            ),
        )
        return _student(row)

    def create_tutor_profile(self, *, user_id, name, contact_number, subjects_taught, experience_years,
                             default_hourly_rate_cents, availability) -> TutorProfile:
        row = self._one(
            f"""
            INSERT INTO app.tutor_profiles
              (user_id, name, contact_number, subjects_taught, experience_years,
               default_hourly_rate_cents, availability)
            VALUES (%s::uuid, %s, %s, %s, %s, %s, %s)
            RETURNING {_TUTOR_COLS}
            """,
            (
                str(user_id),
                name,
                contact_number,
                codec.encode_subjects(subjects_taught),
                experience_years,
                default_hourly_rate_cents,
                codec.encode_availability(availability),
            ),
        )
        return _tutor(row)

    def _update_profile(self, table: str, cols: str, allowed: set[str], user_id: UUID, fields: dict):
        sets: list[str] = []
        params: list[Any] = []
        for key, value in fields.items():
            if key not in allowed:
                raise ValueError(f"Unknown profile field: {key}")
            if key in ("preferred_subjects", "subjects_taught"):
                value = codec.encode_subjects(value)
            elif key == "availability":
                value = codec.encode_availability(value)
            sets.append(f"{key} = %s")
            params.append(value)

        if not sets:
            return self._one(f"SELECT {cols} FROM {table} WHERE user_id = %s::uuid", (str(user_id),))

        params.append(str(user_id))
        return self._one(
            f"UPDATE {table} SET {', '.join(sets)} WHERE user_id = %s::uuid RETURNING {cols}",
            tuple(params),
        )

    def update_student_profile(self, user_id: UUID, **fields: Any) -> Optional[StudentProfile]:
        row = self._update_profile("app.student_profiles", _STUDENT_COLS, _STUDENT_UPDATABLE, user_id, fields)
        return _student(row) if row else None

    def update_tutor_profile(self, user_id: UUID, **fields: Any) -> Optional[TutorProfile]:
        row = self._update_profile("app.tutor_profiles", _TUTOR_COLS, _TUTOR_UPDATABLE, user_id, fields)
        return _tutor(row) if row else None

    def get_student_profile(self, profile_id: UUID) -> Optional[StudentProfile]:
        row = self._one(f"SELECT {_STUDENT_COLS} FROM app.student_profiles WHERE id = %s::uuid", (str(profile_id),))
        return _student(row) if row else None

    def get_tutor_profile(self, profile_id: UUID) -> Optional[TutorProfile]:
        row = self._one(f"SELECT {_TUTOR_COLS} FROM app.tutor_profiles WHERE id = %s::uuid", (str(profile_id),))
        return _tutor(row) if row else None

    def get_student_profile_by_user(self, user_id: UUID) -> Optional[StudentProfile]:
        row = self._one(f"SELECT {_STUDENT_COLS} FROM app.student_profiles WHERE user_id = %s::uuid", (str(user_id),))
        return _student(row) if row else None

    def get_tutor_profile_by_user(self, user_id: UUID) -> Optional[TutorProfile]:
        row = self._one(f"SELECT {_TUTOR_COLS} FROM app.tutor_profiles WHERE user_id = %s::uuid", (str(user_id),))
        return _tutor(row) if row else None

    def list_students(self) -> list[tuple[User, StudentProfile]]:
        rows = self._all(
            """
            SELECT u.id AS u_id, u.email, u.password_hash, u.role, u.created_at,
                   p.id, p.user_id, p.name, p.contact_number, p.preferred_subjects,
                   p.budget_min_cents, p.budget_max_cents
            FROM app.student_profiles p
            JOIN app.users u ON u.id = p.user_id
            ORDER BY u.created_at DESC
            """
        )
        return [(_user({**r, "id": r["u_id"]}), _student(r)) for r in rows]

    def list_tutors(self) -> list[tuple[User, TutorProfile]]:
        rows = self._all(
            """
            SELECT u.id AS u_id, u.email, u.password_hash, u.role, u.created_at,
                   p.id, p.user_id, p.name, p.contact_number, p.subjects_taught,
                   p.experience_years, p.default_hourly_rate_cents, p.availability
            FROM app.tutor_profiles p
            JOIN app.users u ON u.id = p.user_id
            ORDER BY u.created_at DESC
            """
        )
        return [(_user({**r, "id": r["u_id"]}), _tutor(r)) for r in rows]

    # ------------------------------------------------------
    # assignments
    # ------------------------------------------------------

    def insert_assignment(self, *, student_id, tutor_id, subject, total_fee_cents, tutor_fee_cents,
                          platform_commission_cents, status) -> Assignment:
        row = self._one(
            f"""
            INSERT INTO app.assignments
              (student_id, tutor_id, subject, total_fee_cents, tutor_fee_cents,
               platform_commission_cents, status)
            VALUES (%s::uuid, %s::uuid, %s, %s, %s, %s, %s)
            RETURNING {_ASSIGNMENT_COLS}
            """,
            (
                str(student_id),
                str(tutor_id),
                subject,
                total_fee_cents,
                tutor_fee_cents,
                platform_commission_cents,
                status,
            ),
        )
        return _assignment(row)

    def get_assignment(self, assignment_id: UUID) -> Optional[Assignment]:
        row = self._one(
            f"SELECT {_ASSIGNMENT_COLS} FROM app.assignments WHERE id = %s::uuid",
            (str(assignment_id),),
        )
        return _assignment(row) if row else None

    def list_assignments(self, *, student_id=None, tutor_id=None, statuses=None,
                         exclude_statuses=None) -> list[Assignment]:
        where: list[str] = []
        params: list[Any] = []
        if student_id is not None:
            where.append("student_id = %s::uuid")
            params.append(str(student_id))
        if tutor_id is not None:
            where.append("tutor_id = %s::uuid")
            params.append(str(tutor_id))
        if statuses is not None:
            where.append("status = ANY(%s)")
            params.append(list(statuses))
        if exclude_statuses is not None:
            where.append("NOT (status = ANY(%s))")
            params.append(list(exclude_statuses))

        sql = f"SELECT {_ASSIGNMENT_COLS} FROM app.assignments"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC"
        return [_assignment(r) for r in self._all(sql, tuple(params))]

    def transition_assignment(self, assignment_id, *, from_status, to_status, cancel_reason=None) -> bool:
        n = self._rowcount(
            """
            UPDATE app.assignments
            SET status = %s,
                cancel_reason = COALESCE(%s, cancel_reason),
                updated_at = now()
            WHERE id = %s::uuid
              AND status = %s
            """,
            (to_status, cancel_reason, str(assignment_id), from_status),
        )
        return n == 1

    def count_assignments_by_status(self) -> dict[str, int]:
        rows = self._all("SELECT status, COUNT(*) AS n FROM app.assignments GROUP BY status")
        return {r["status"]: int(r["n"]) for r in rows}

    # ------------------------------------------------------
    # payments
    # ------------------------------------------------------

    def insert_payment(self, *, assignment_id, amount_cents) -> Payment:
        self._rowcount(
            """
            INSERT INTO app.payments (assignment_id, amount_cents, status)
            VALUES (%s::uuid, %s, 'PENDING')
            ON CONFLICT (assignment_id) DO NOTHING
            """,
            (str(assignment_id), amount_cents),
        )
        return self.get_payment_by_assignment(assignment_id)

    def get_payment_by_assignment(self, assignment_id) -> Optional[Payment]:
        row = self._one(
            f"SELECT {_PAYMENT_COLS} FROM app.payments WHERE assignment_id = %s::uuid",
            (str(assignment_id),),
        )
        return _payment(row) if row else None

    def attach_checkout_session(self, payment_id, *, session_id, checkout_url) -> None:
        self._rowcount(
            """
            UPDATE app.payments
            SET checkout_session_id = %s, checkout_url = %s
            WHERE id = %s::uuid
            """,
            (session_id, checkout_url, str(payment_id)),
        )

    def mark_payment_succeeded(self, assignment_id, *, amount_cents, platform_fee_cents, external_ref,
                               amount_mismatch) -> bool:
        # upsert: a confirmation can land for an assignment whose payment row was never written
        n = self._rowcount(
            """
            INSERT INTO app.payments
              (assignment_id, amount_cents, platform_fee_cents, status, external_ref, amount_mismatch, paid_at)
            VALUES (%s::uuid, %s, %s, 'SUCCEEDED', %s, %s, now())
            ON CONFLICT (assignment_id) DO UPDATE
              SET amount_cents = EXCLUDED.amount_cents,
                  platform_fee_cents = EXCLUDED.platform_fee_cents,
                  status = 'SUCCEEDED',
                  external_ref = COALESCE(EXCLUDED.external_ref, app.payments.external_ref),
                  amount_mismatch = EXCLUDED.amount_mismatch,
                  paid_at = EXCLUDED.paid_at
              WHERE app.payments.status <> 'SUCCEEDED'
            """,
            (str(assignment_id), amount_cents, platform_fee_cents, external_ref, amount_mismatch),
        )
        return n == 1

    def mark_payment_failed(self, assignment_id, *, reason) -> bool:
        n = self._rowcount(
            """
            UPDATE app.payments
            SET status = 'FAILED', failure_reason = %s
            WHERE assignment_id = %s::uuid
              AND status = 'PENDING'
            """,
            (reason, str(assignment_id)),
        )
        return n == 1

    def list_payments(self, *, student_id=None) -> list[Payment]:
        if student_id is None:
            rows = self._all(f"SELECT {_PAYMENT_COLS} FROM app.payments ORDER BY paid_at DESC NULLS LAST, created_at DESC")
        else:
            cols = ", ".join(f"p.{c.strip()}" for c in _PAYMENT_COLS.split(","))
            rows = self._all(
                f"""
                SELECT {cols}
                FROM app.payments p
                JOIN app.assignments a ON a.id = p.assignment_id
                WHERE a.student_id = %s::uuid
                ORDER BY p.paid_at DESC NULLS LAST, p.created_at DESC
                """,
                (str(student_id),),
            )
        return [_payment(r) for r in rows]

    def sum_platform_fees_succeeded(self) -> int:
        row = self._one(
            "SELECT COALESCE(SUM(platform_fee_cents), 0) AS total FROM app.payments WHERE status = 'SUCCEEDED'"
        )
        return int(row["total"]) if row else 0

    def list_stale_payment_assignments(self, *, created_before) -> list[UUID]:
        rows = self._all(
            """
            SELECT a.id
            FROM app.assignments a
            JOIN app.payments p ON p.assignment_id = a.id
            WHERE a.status = 'PAYMENT_PENDING'
              AND p.status = 'PENDING'
              AND p.created_at < %s
            ORDER BY p.created_at
            """,
            (created_before,),
        )
        return [r["id"] for r in rows]

    # ------------------------------------------------------
    # payouts
    # ------------------------------------------------------

    def insert_payout_if_absent(self, *, assignment_id, tutor_id, amount_cents) -> tuple[Payout, bool]:
        row = self._one(
            f"""
            INSERT INTO app.payouts (assignment_id, tutor_id, amount_cents, status)
            VALUES (%s::uuid, %s::uuid, %s, 'PENDING')
            ON CONFLICT (assignment_id) DO NOTHING
            RETURNING {_PAYOUT_COLS}
            """,
            (str(assignment_id), str(tutor_id), amount_cents),
        )
        if row:
            return _payout(row), True

        existing = self._one(
            f"SELECT {_PAYOUT_COLS} FROM app.payouts WHERE assignment_id = %s::uuid",
            (str(assignment_id),),
        )
        return _payout(existing), False

    def get_payout(self, payout_id) -> Optional[Payout]:
        row = self._one(f"SELECT {_PAYOUT_COLS} FROM app.payouts WHERE id = %s::uuid", (str(payout_id),))
        return _payout(row) if row else None

    def list_payouts(self, *, tutor_id=None) -> list[Payout]:
        if tutor_id is None:
            rows = self._all(f"SELECT {_PAYOUT_COLS} FROM app.payouts ORDER BY initiated_at DESC")
        else:
            rows = self._all(
                f"SELECT {_PAYOUT_COLS} FROM app.payouts WHERE tutor_id = %s::uuid ORDER BY initiated_at DESC",
                (str(tutor_id),),
            )
        return [_payout(r) for r in rows]

    def transition_payout(self, payout_id, *, from_status, to_status) -> bool:
        n = self._rowcount(
            """
            UPDATE app.payouts
            SET status = %s,
                paid_at = CASE WHEN %s = 'PAID' THEN now() ELSE paid_at END
            WHERE id = %s::uuid
              AND status = %s
            """,
            (to_status, to_status, str(payout_id), from_status),
        )
        return n == 1

    # ------------------------------------------------------
    # audit
    # ------------------------------------------------------

    def write_audit_log(self, *, actor_user_id, action, target_id, metadata=None) -> None:
        self._rowcount(
            """
            INSERT INTO app.audit_log (actor_user_id, action, target_id, metadata)
            VALUES (%s::uuid, %s, %s, %s::jsonb);
            """,
            (
                str(actor_user_id) if actor_user_id else None,
                action,
                target_id,
                Json(metadata or {}),
            ),
        )
