"""
Chat Relay - FastAPI application entry point.

Backend for a chat application:
- Signup/login with cookie-based sessions
- Per-user conversation storage
- Relaying chat messages to the OpenAI completion API
- Custom-model fine-tuning
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.routes import api_router
from app.core.config import settings
from app.core.errors import ChatRelayError
from app.services.database import user_store

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("chat_relay")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: connect the user store (tables are created if missing).
    Shutdown: close the connection pool.
    """
    logger.info("Starting up Chat Relay...")

    if await user_store.connect():
        logger.info("User store connected to %s", settings.sanitize_url(settings.DATABASE_URL))
    else:
        logger.error("User store not available - every request touching user data will fail")

    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY not set - chat relay and fine-tuning are disabled")

    yield

    logger.info("Shutting down...")
    await user_store.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Chat backend with cookie sessions, conversation storage and OpenAI fine-tuning",
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# =============================================================================
# Security Middleware
# =============================================================================

# Cookie sessions need credentials allowed and explicit origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """
    Add security headers to all responses.

    Headers:
    - X-Content-Type-Options: Prevent MIME type sniffing
    - X-Frame-Options: Prevent clickjacking
    - X-XSS-Protection: Enable XSS filtering (legacy browsers)
    - Referrer-Policy: Control referrer information
    - Cache-Control: Prevent caching of sensitive data
    """
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    # API responses carry conversations and account data
    if request.url.path.startswith(settings.API_V1_STR):
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        response.headers["Pragma"] = "no-cache"

    return response


@app.middleware("http")
async def catch_exceptions_middleware(request: Request, call_next):
    """
    Last-resort handler for anything that is not a ChatRelayError.

    Logs full exception for debugging, returns generic error to client.
    """
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception during request to %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"message": "ERROR", "cause": "Internal server error"},
        )


@app.exception_handler(ChatRelayError)
async def chat_relay_error_handler(request: Request, exc: ChatRelayError) -> JSONResponse:
    """Render typed errors as the ``{"message": "ERROR", "cause": ...}`` envelope."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.kind.value, request.url.path, exc.detail or exc.cause)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(expose_details=settings.EXPOSE_ERROR_DETAILS),
    )


# =============================================================================
# Routes
# =============================================================================

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {
        "status": "healthy",
        "database_connected": user_store.is_available,
        "openai_configured": settings.OPENAI_API_KEY is not None,
    }
