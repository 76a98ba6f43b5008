# tests/conftest.py

import uuid
from dataclasses import dataclass
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

import rate_limit
from app.assignments.ledger import AssignmentLedger
from app.providers.mock import MockCheckoutProvider
from deps.checkout import checkout_provider
from deps.store import get_store
from main import create_app
from memory_store import MemoryStore
from security import create_access_token, hash_password


@dataclass
class AuthedUser:
    email: str
    password: str
    token: str
    user_id: str
    profile_id: Optional[str] = None


# ---------------------------
# App + Client
# ---------------------------

@pytest.fixture(autouse=True)
def _fresh_rate_limiter():
    rate_limit._limiter = rate_limit.InMemoryRateLimiter()
    yield
    rate_limit._limiter = rate_limit.InMemoryRateLimiter()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def provider() -> MockCheckoutProvider:
    return MockCheckoutProvider()


@pytest.fixture()
def app(store: MemoryStore, provider: MockCheckoutProvider):
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[checkout_provider] = lambda: provider
    return app


@pytest.fixture()
def client(app) -> TestClient:
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------
# Auth Helpers
# ---------------------------

def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register(client: TestClient, role: str, profile: Optional[dict] = None, email: Optional[str] = None) -> AuthedUser:
    email = email or f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com"
    password = "password123"
    r = client.post(
        "/v1/auth/register",
        json={"email": email, "password": password, "role": role, "profile": profile or {}},
    )
    assert r.status_code == 201, f"Register failed: {r.status_code} {r.text}"
    data = r.json()
    return AuthedUser(
        email=email,
        password=password,
        token=data["access_token"],
        user_id=data["user"]["id"],
        profile_id=(data["user"]["profile"] or {}).get("id"),
    )


def _make_admin(store: MemoryStore) -> AuthedUser:
    # admins are never self-registered
    email = f"admin-{uuid.uuid4().hex[:8]}@example.com"
    user = store.create_user(email=email, password_hash=hash_password("password123"), role="ADMIN")
    return AuthedUser(
        email=email,
        password="password123",
        token=create_access_token(user.id, "ADMIN"),
        user_id=str(user.id),
    )


def _create_assignment(
    client: TestClient,
    admin: AuthedUser,
    student: AuthedUser,
    tutor: AuthedUser,
    *,
    total_fee_cents: int = 5000,
    tutor_fee_cents: int = 4000,
    subject: str = "Math",
) -> dict:
    r = client.post(
        "/v1/admin/assignments",
        json={
            "student_id": student.profile_id,
            "tutor_id": tutor.profile_id,
            "subject": subject,
            "total_fee_cents": total_fee_cents,
            "tutor_fee_cents": tutor_fee_cents,
        },
        headers=_auth_headers(admin.token),
    )
    assert r.status_code == 201, f"create assignment failed: {r.status_code} {r.text}"
    return r.json()


# ---------------------------
# Base Test Users
# ---------------------------

@pytest.fixture()
def admin(store: MemoryStore) -> AuthedUser:
    return _make_admin(store)


@pytest.fixture()
def student(client: TestClient) -> AuthedUser:
    return _register(client, "STUDENT", {"name": "Sam Student", "preferred_subjects": ["Math"]})


@pytest.fixture()
def tutor(client: TestClient) -> AuthedUser:
    return _register(
        client,
        "TUTOR",
        {"name": "Tara Tutor", "subjects_taught": ["Math", "Physics"], "default_hourly_rate_cents": 4000},
    )


# ---------------------------
# Ledger-level fixtures (no HTTP)
# ---------------------------

@dataclass
class Parties:
    store: MemoryStore
    ledger: AssignmentLedger
    student_id: uuid.UUID
    tutor_id: uuid.UUID


@pytest.fixture()
def parties(store: MemoryStore) -> Parties:
    s_user = store.create_user(email="s@example.com", password_hash="x", role="STUDENT")
    t_user = store.create_user(email="t@example.com", password_hash="x", role="TUTOR")
    student_profile = store.create_student_profile(
        user_id=s_user.id, name="Sam", contact_number="", preferred_subjects=[],
        budget_min_cents=None, budget_max_cents=None,
    )
    tutor_profile = store.create_tutor_profile(
        user_id=t_user.id, name="Tara", contact_number="", subjects_taught=["Math"],
        experience_years=3, default_hourly_rate_cents=4000, availability={},
    )
    return Parties(
        store=store,
        ledger=AssignmentLedger(store),
        student_id=student_profile.id,
        tutor_id=tutor_profile.id,
    )
