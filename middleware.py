import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from services.metrics import increment_http_requests
from services.observability import set_request_id
from services.redaction import redact_headers

logger = logging.getLogger("tutormatch.http")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.time()

        # attach to request state
        request.state.request_id = req_id
        set_request_id(req_id)

        response = None
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            duration_ms = int((time.time() - start) * 1000)
            status = getattr(response, "status_code", 500)
            route = request.scope.get("route")
            increment_http_requests(getattr(route, "path", request.url.path), status)

            # minimal structured log line (no PII)
            logger.info(
                "http_request_end request_id=%s method=%s path=%s status=%s duration_ms=%s client=%s",
                req_id,
                request.method,
                request.url.path,
                status,
                duration_ms,
                request.client.host if request.client else None,
            )
            logger.debug("http_request_headers request_id=%s headers=%s", req_id, redact_headers(dict(request.headers)))
            set_request_id(None)
