# scripts/expire_pending_payments.py
"""
Cancel assignments whose checkout never completed.

Runs once by default; pass --loop to keep sweeping every
EXPIRE_INTERVAL_SECONDS (default 300).
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.assignments.ledger import AssignmentLedger  # noqa: E402
from app.store import PostgresStore  # noqa: E402
from db import get_conn  # noqa: E402
from services.observability import configure_logging  # noqa: E402
from settings import settings  # noqa: E402


logger = logging.getLogger("expire_pending_payments")


def _interval_seconds() -> int:
    raw = os.getenv("EXPIRE_INTERVAL_SECONDS", "300")
    try:
        value = int(raw)
    except ValueError:
        return 300
    return max(1, value)


def run_once() -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.PAYMENT_PENDING_TTL_MINUTES)
    with get_conn() as conn:
        expired = AssignmentLedger(PostgresStore(conn)).expire_stale_payments(created_before=cutoff)
    logger.info("Expiry sweep done | cutoff=%s expired=%s", cutoff.isoformat(), len(expired))
    return len(expired)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Expire stale PAYMENT_PENDING assignments.")
    parser.add_argument("--loop", action="store_true")
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)
    if not args.loop:
        run_once()
        return

    interval = _interval_seconds()
    logger.info("Expiry daemon starting; interval=%ss", interval)
    while True:
        try:
            run_once()
        except KeyboardInterrupt:
            logger.info("Expiry daemon exiting")
            raise
        except Exception:
            logger.exception("Expiry sweep failed")
            raise
        time.sleep(interval)


if __name__ == "__main__":
    main()
