import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from okr_tracker.core.config import settings
from okr_tracker.core.database import session_manager
from okr_tracker.core.logger import generate_request_id, setup_logging
from okr_tracker.services.AISuggestionService import AISuggestionService
from okr_tracker.services.SuggestionCache import SuggestionCache

from okr_tracker.api.v1.endpoints.ai import router as ai_router
from okr_tracker.api.v1.endpoints.audit import router as audit_router
from okr_tracker.api.v1.endpoints.auth import router as auth_router
from okr_tracker.api.v1.endpoints.career import router as career_router
from okr_tracker.api.v1.endpoints.courses import router as courses_router
from okr_tracker.api.v1.endpoints.enrollments import router as enrollments_router
from okr_tracker.api.v1.endpoints.health import router as health_router
from okr_tracker.api.v1.endpoints.okrs import router as okrs_router
from okr_tracker.api.v1.endpoints.organization import router as organization_router
from okr_tracker.api.v1.endpoints.team import router as team_router

setup_logging(settings.LOG_LEVEL, json_output=settings.IS_PRODUCTION)
logger = logging.getLogger(__name__)

RATE_LIMIT = 100
RATE_LIMIT_WINDOW_SECONDS = 60
CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async context manager for app lifespan events"""
    try:
        logger.info("Starting OKR tracker %s (%s)", settings.APP_VERSION, settings.NODE_ENV)
        await session_manager.init()
        logger.info("Database connection pool ready")
    except Exception as e:
        logger.critical("Application startup failed: %s", e)
        raise

    try:
        yield
    finally:
        await session_manager.close()
        app.state.suggestion_cache.clear()
        logger.info("Application shutdown complete")


app = FastAPI(
    title="OKR Tracker API",
    description="OKRs, check-ins and learning courses for organizations",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# One cache and one AI client per process
app.state.suggestion_cache = SuggestionCache(
    max_entries=settings.AI_CACHE_MAX_ENTRIES,
    ttl_seconds=settings.AI_CACHE_TTL_SECONDS,
)
app.state.ai_service = AISuggestionService.from_settings()


def add_api_headers(response, request_id: str, duration_ms: int):
    """CORS, informational rate-limit and tracing headers on every response."""
    for name, value in CORS_HEADERS.items():
        response.headers.setdefault(name, value)
    response.headers["X-RateLimit-Limit"] = str(RATE_LIMIT)
    response.headers["X-RateLimit-Remaining"] = str(RATE_LIMIT - 1)
    response.headers["X-RateLimit-Reset"] = str(int(time.time()) + RATE_LIMIT_WINDOW_SECONDS)
    response.headers["X-Request-Id"] = request_id
    response.headers["X-Response-Time"] = f"{duration_ms}ms"
    return response


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    start = time.perf_counter()
    context = {"request_id": request_id, "method": request.method, "path": request.url.path}
    logger.debug("Request started", extra=context)

    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.exception("Unhandled error", extra={**context, "error": str(e), "duration_ms": duration_ms})
        response = JSONResponse(status_code=500, content={"error": "Interner Serverfehler"})
        return add_api_headers(response, request_id, duration_ms)

    duration_ms = int((time.perf_counter() - start) * 1000)
    context.update(status_code=response.status_code, duration_ms=duration_ms)
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        context["user_id"] = user_id

    if response.status_code >= 500:
        logger.error("Request failed", extra=context)
    elif duration_ms > settings.SLOW_REQUEST_THRESHOLD_MS:
        logger.warning("Slow request", extra=context)
    else:
        logger.info("Request finished", extra=context)

    return add_api_headers(response, request_id, duration_ms)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Validation error", extra={"path": request.url.path, "errors": len(exc.errors())})
    # raw input is not echoed; it may hold non-finite floats
    details = [{key: value for key, value in error.items() if key != "input"} for error in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"error": "Validierungsfehler", "details": jsonable_encoder(details)},
    )


app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(okrs_router, prefix="/api")
app.include_router(courses_router, prefix="/api")
app.include_router(enrollments_router, prefix="/api")
app.include_router(organization_router, prefix="/api")
app.include_router(team_router, prefix="/api")
app.include_router(career_router, prefix="/api")
app.include_router(audit_router, prefix="/api")
app.include_router(ai_router, prefix="/api")

logger.info("Loaded %d routes", len(app.routes))
