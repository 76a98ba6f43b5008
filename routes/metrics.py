# routes/metrics.py
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from deps.auth import CurrentUser, require_admin
from services.metrics import render_prometheus

router = APIRouter(tags=["metrics"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


@router.get("/metrics", response_class=PlainTextResponse)
def metrics():
    return PlainTextResponse(render_prometheus(), media_type=PROMETHEUS_CONTENT_TYPE)


@router.get("/v1/admin/metrics", response_class=PlainTextResponse)
def admin_metrics(admin: CurrentUser = Depends(require_admin)):
    # same series, for deployments that don't expose /metrics publicly
    return PlainTextResponse(render_prometheus(), media_type=PROMETHEUS_CONTENT_TYPE)
