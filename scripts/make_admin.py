# scripts/make_admin.py
"""
Create an ADMIN account, or promote an existing user to ADMIN.

    python scripts/make_admin.py admin@example.com --password 'changeme123'
"""
from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.store import PostgresStore  # noqa: E402
from db import get_conn  # noqa: E402
from security import hash_password  # noqa: E402
from services.observability import configure_logging  # noqa: E402


logger = logging.getLogger("make_admin")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote a TutorMatch admin account.")
    parser.add_argument("email")
    parser.add_argument("--password", help="required when the account does not exist yet")
    args = parser.parse_args(argv)

    configure_logging("INFO")

    with get_conn() as conn:
        store = PostgresStore(conn)
        user = store.get_user_by_email(args.email)

        if user is None:
            password = args.password or getpass.getpass("Password for new admin: ")
            if len(password) < 8:
                logger.error("Password must be at least 8 characters")
                return 2
            user = store.create_user(email=args.email, password_hash=hash_password(password), role="ADMIN")
            logger.info("admin_created user_id=%s", user.id)
        elif user.role == "ADMIN":
            logger.info("admin_exists user_id=%s", user.id)
        else:
            store.set_user_role(user.id, "ADMIN")
            logger.info("admin_promoted user_id=%s previous_role=%s", user.id, user.role)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
