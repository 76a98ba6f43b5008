#main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from db import close_pool
from middleware import RequestContextMiddleware
from routes.admin import router as admin_router
from routes.auth import router as auth_router
from routes.health import router as health_router
from routes.metrics import router as metrics_router
from routes.profiles import router as profiles_router
from routes.student import router as student_router
from routes.tutor import router as tutor_router
from routes.webhooks import router as webhooks_router
from services.http_errors import install_exception_handlers
from services.observability import configure_logging
from settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_pool()


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="TutorMatch API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)

    # -----------------------------
    # ROUTERS
    # -----------------------------

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(auth_router)
    app.include_router(profiles_router)
    app.include_router(admin_router)
    app.include_router(student_router)
    app.include_router(tutor_router)
    app.include_router(webhooks_router)

    install_exception_handlers(app)
    return app


app = create_app()
