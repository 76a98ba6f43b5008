# app/providers/http.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str


class HttpClient:
    def __init__(self, timeout_s: float = 20.0, transport: httpx.BaseTransport | None = None):
        self._client = httpx.Client(timeout=timeout_s, transport=transport)

    def post_form(
        self,
        url: str,
        *,
        headers: dict[str, str],
        data: dict[str, Any],
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, data=data)
        return self._wrap(r)

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)


def is_retryable_http(code: int) -> bool:
    # Retry transient / throttling / gateway issues
    return code in (408, 425, 429, 500, 502, 503, 504)
