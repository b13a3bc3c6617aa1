import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config.logging_config import configure_logging
from src.config.settings import settings
from src.database.client import close_db, create_tables, init_db
from src.features.auth.router import router as auth_router
from src.shared.middlewares.request_logging import request_logging_middleware
from src.shared.rate_limit import limiter, rate_limit_handler
from src.shared.result import ErrorCode
from src.shared.schemas import ApiResponse, envelope

logger = logging.getLogger(__name__)

_STATUS_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render HTTP exceptions in the response envelope."""
    if not isinstance(exc, StarletteHTTPException):
        return await unhandled_exception_handler(request, exc)

    error_code = getattr(exc, "error_code", None) or _STATUS_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return envelope(
        ApiResponse.failure(str(exc.detail), error_code),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """One message per invalid field."""
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    messages = []
    for error in errors:
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        messages.append(f"{field}: {message}" if field else message)
    return envelope(
        ApiResponse.failure(messages or ["Invalid request."], ErrorCode.VALIDATION_ERROR),
        status_code=422,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return envelope(
        ApiResponse.failure("An error occurred while processing your request.", ErrorCode.INTERNAL_ERROR),
        status_code=500,
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.log_format)
    await init_db()
    await create_tables()
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Add rate limiting middleware
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.middleware("http")(request_logging_middleware)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

# Router Registration
routers: list[APIRouter] = [
    auth_router,
]

for router in routers:
    app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": settings.app_name, "status": "running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
