# services/http_errors.py
"""
Exception -> HTTP mapping.

Business errors carry a stable `kind`. Anything unexpected fails closed:
a 500 with a fixed message and no exception text.
"""
from __future__ import annotations

import logging

import psycopg2
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.errors import LedgerError
from app.providers.base import CheckoutProviderError

logger = logging.getLogger("tutormatch.errors")


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


async def ledger_error_handler(request: Request, exc: LedgerError):
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.kind, "detail": exc.message},
    )


async def checkout_error_handler(request: Request, exc: CheckoutProviderError):
    logger.warning(
        "checkout_provider_error request_id=%s http_status=%s retryable=%s error=%s",
        _request_id(request),
        exc.http_status,
        exc.retryable,
        exc,
    )
    return JSONResponse(
        status_code=502,
        content={"error": "CHECKOUT_PROVIDER_ERROR", "detail": "Payment provider unavailable", "retryable": exc.retryable},
    )


async def db_unavailable_handler(request: Request, exc: psycopg2.OperationalError):
    logger.error("db_unavailable request_id=%s error=%s", _request_id(request), type(exc).__name__)
    return JSONResponse(status_code=503, content={"detail": "Service unavailable"})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error request_id=%s path=%s", _request_id(request), request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(CheckoutProviderError, checkout_error_handler)
    app.add_exception_handler(psycopg2.OperationalError, db_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
