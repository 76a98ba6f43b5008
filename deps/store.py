# deps/store.py
from typing import Iterator

from db import get_conn
from app.store import PostgresStore, Store


def get_store() -> Iterator[Store]:
    """
    One pooled connection (and one transaction) per request.
    FastAPI caches the dependency, so every consumer in a request shares it.
    """
    with get_conn() as conn:
        yield PostgresStore(conn)
