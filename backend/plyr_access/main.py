import logging
import sys
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from .errors import setup_error_handlers, validation_error_response
from .config import settings
from .access_api import router as access_router
from .observability import (
    REQUEST_ID_HEADER,
    REQUEST_ID_MAX_LEN,
    bind_request,
    duration_ms,
    log_ctx,
    log_ctx_json,
    new_request_id,
    resolve_request_id,
    unbind_request,
)

SERVICE_NAME = "plyr-access"
SERVICE_VERSION = "0.1.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("plyr-access-api")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting PlyrZero access API...")
    logger.info(
        "Entitlement config: trial_window_days=%s refresh_tick_sec=%s refresh_publish_sec=%s free_mode=%s",
        settings.TRIAL_WINDOW_DAYS,
        settings.REFRESH_TICK_SEC,
        settings.REFRESH_PUBLISH_SEC,
        settings.free_mode_enabled(),
    )
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.warning("Supabase is not configured; every subscription lookup will fail closed")
    yield
    logger.info("Shutting down PlyrZero access API...")

app = FastAPI(
    title="PlyrZero Access API",
    description="Trial and subscription entitlements for PlyrZero",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_allow_origins(),
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    started_at = time.monotonic()
    request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

    if request_id is None:
        request.state.request_id = new_request_id()
        logger.warning(
            "REQUEST_REJECTED context=%s",
            log_ctx_json(log_ctx(extra={
                "request_id": request.state.request_id,
                "path": request.url.path,
                "reason": "invalid_x_request_id",
            })),
        )
        return validation_error_response(
            request.state.request_id,
            [{"field": f"header.{REQUEST_ID_HEADER}", "issue": f"must be non-empty and <= {REQUEST_ID_MAX_LEN} chars"}],
        )

    request.state.request_id = request_id
    token = bind_request(request_id, request.url.path)
    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "REQUEST_DONE context=%s",
            log_ctx_json(log_ctx(extra={
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": duration_ms(started_at),
            })),
        )
        return response
    finally:
        unbind_request(token)

setup_error_handlers(app)

v1_router = APIRouter(prefix="/v1")


@app.get("/health", tags=["Health"])
@v1_router.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }

app.include_router(v1_router)
app.include_router(access_router)
