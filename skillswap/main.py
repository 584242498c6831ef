"""SkillSwap FastAPI application."""

import asyncio
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from skillswap.database import check_db, close_db, init_db
from skillswap.exceptions import SkillSwapError
from skillswap.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from skillswap.middleware.rate_limit import RateLimitMiddleware
from skillswap.redis import close_redis, get_redis, init_redis
from skillswap.services.scheduler_service import xp_outbox_loop

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: DB + Redis + XP outbox sweeper."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    json_format = os.getenv("LOG_FORMAT", "json") == "json"
    configure_logging(level=log_level, json_format=json_format)

    logger.info("starting_database_init")
    await init_db()

    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    await init_redis(redis_url)
    logger.info("redis_connected", url=redis_url)

    stop_event = asyncio.Event()
    sweeper = asyncio.create_task(xp_outbox_loop(stop_event))

    logger.info("application_started")
    yield

    logger.info("shutting_down")
    stop_event.set()
    await sweeper
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


app = FastAPI(
    title="SkillSwap",
    description="Skill-matching platform: find collaborators, swap skills, chat once both agree",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    RateLimitMiddleware,
    redis_getter=get_redis,
    limit=int(os.getenv("RATE_LIMIT_PER_MINUTE", "120")),
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    bind_request_context(request_id, method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        clear_request_context()


# --- Exception handlers ---


def _envelope(status_code: int, message: str, error: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error},
    )


@app.exception_handler(SkillSwapError)
async def skillswap_error_handler(request: Request, exc: SkillSwapError):
    logger.info(
        "request_rejected",
        error_type=exc.error_type,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return _envelope(exc.status_code, exc.message, exc.error_type)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    detail = f"{location}: {first.get('msg', 'invalid input')}" if location else first.get("msg")
    return _envelope(status.HTTP_400_BAD_REQUEST, "Request validation failed", detail)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail), None)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", str(exc))


# --- Routers ---
from skillswap.routes.admin import router as admin_router  # noqa: E402
from skillswap.routes.auth import router as auth_router  # noqa: E402
from skillswap.routes.chat import router as chat_router  # noqa: E402
from skillswap.routes.reports import router as reports_router  # noqa: E402
from skillswap.routes.requests import router as requests_router  # noqa: E402
from skillswap.routes.users import router as users_router  # noqa: E402

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(requests_router)
app.include_router(chat_router)
app.include_router(reports_router)
app.include_router(admin_router)


@app.get("/health")
async def health_check():
    db_ok = await check_db()
    return {
        "status": "ok" if db_ok else "degraded",
        "service": "skillswap",
        "database": "ok" if db_ok else "unavailable",
    }
