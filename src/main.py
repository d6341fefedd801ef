# src/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Gauge
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from src.affiliate import models as affiliate_models  # noqa
from src.api import api_router
from src.auth import models as auth_models  # noqa
from src.config import settings
from src.exception import register_exception_handlers
from src.logging import configure_logging, get_logger
from src.notifications import models as notification_models  # noqa
from src.otp import models as otp_models  # noqa
from src.profile import models as profile_models  # noqa
from src.tasks import task_runner

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app_starting", project=settings.PROJECT_NAME)
    yield
    # Let queued emails and cleanups finish before the loop goes away
    await task_runner.drain()
    logger.info("app_stopped")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

Instrumentator().instrument(app).expose(
    app,
    endpoint="/metrics",
    include_in_schema=False,
)

INPROGRESS = Gauge("inprogress_requests", "In-progress HTTP requests")


class InflightMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        INPROGRESS.inc()
        try:
            return await call_next(request)
        finally:
            INPROGRESS.dec()


app.add_middleware(InflightMiddleware)

register_exception_handlers(app)
app.include_router(api_router)

origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.get("/")
async def read_root():
    return {"msg": f"Welcome to {settings.PROJECT_NAME}!"}


@app.get("/health-check")
async def health_check():
    return {"status": "healthy"}
