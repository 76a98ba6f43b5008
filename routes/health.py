# routes/health.py
from __future__ import annotations

import os

from fastapi import APIRouter

import db
from settings import settings

router = APIRouter(tags=["health"])

EXPECTED_REVISION = "0001_initial_schema"


def _version() -> str:
    return os.getenv("APP_VERSION", "1.0.0")


def _git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health():
    """Liveness only; does not touch the database."""
    return {
        "ok": True,
        "service": "tutormatch-api",
        "version": _version(),
        "git_sha": _git_sha(),
        "checkout_mode": settings.CHECKOUT_MODE,
    }


@router.get("/healthz")
def healthz():
    db_ok, db_error = db.ping()
    return {
        "ok": True,
        "version": _version(),
        "git_sha": _git_sha(),
        "db_ok": db_ok,
        "db_error": db_error,
    }


@router.get("/readyz")
def readyz():
    db_ok, db_error = db.ping()
    revision = db.migration_revision() if db_ok else None
    migrations_ok = revision == EXPECTED_REVISION
    return {
        "ready": bool(db_ok and migrations_ok),
        "version": _version(),
        "db_ok": db_ok,
        "db_error": db_error,
        "migrations_ok": migrations_ok,
        "migration_revision": revision,
        "expected_revision": EXPECTED_REVISION,
    }
