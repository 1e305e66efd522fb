"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application for the
SecureFace passwordless authentication API.

The application provides:
- Registration, email verification and face enrollment endpoints
- The three-step challenge-response login
- Current-user and logout endpoints
- Health check endpoint

Usage:
    # From project root:
    uvicorn api.app:app --host 0.0.0.0 --port 8000 --reload

    # Or run directly:
    python -m api.app
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import get_flow
from api.routes import (
    authentication_router,
    enrollment_router,
    management_router,
    verification_link_router,
)
from api.schemas import HealthResponse
from core.auth_flow import AuthFlow, get_auth_flow
from core.config import get_config
from core.errors import AuthError, InternalError

API_VERSION = "0.1.0"
DEFAULT_CORS_ORIGINS = ["http://localhost:5000", "http://localhost:8000"]

# Seconds between sweeps of expired sessions
SESSION_PRUNE_INTERVAL = 60 * 60


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def prune_sessions_periodically(flow: AuthFlow, interval: float = SESSION_PRUNE_INTERVAL):
    """Drop expired sessions every `interval` seconds."""
    while True:
        await asyncio.sleep(interval)
        flow.sessions.prune()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup:
    - Initialize the user store, session store and flow controller
    - Start the expired-session sweeper

    Runs on shutdown:
    - Stop the sweeper and close the database connection
    """
    logger.info("=" * 60)
    logger.info("Starting SecureFace Authentication API")
    logger.info("=" * 60)

    flow = get_auth_flow()
    logger.info(f"User store ready: {flow.users.count_users()} users registered")
    logger.info(
        f"Flow policy: auto_verify={flow.settings.auto_verify}, "
        f"require_face_match={flow.settings.require_face_match}, "
        f"threshold={flow.settings.match_threshold}"
    )

    sweeper = asyncio.create_task(prune_sessions_periodically(flow))

    logger.info("API startup complete!")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down API...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    flow.users.close()
    logger.info("Shutdown complete")


def _cors_origins():
    try:
        return get_config().get("api", {}).get("cors_origins", DEFAULT_CORS_ORIGINS)
    except FileNotFoundError:
        return DEFAULT_CORS_ORIGINS


# Create FastAPI application
app = FastAPI(
    title="SecureFace Authentication API",
    description="""
Passwordless authentication combining email verification, browser-side
face descriptor matching and a challenge-response signature.

## Flow
- **Register**: `POST /api/register`, then enroll a face with
  `POST /api/register/face` and keep the returned private key
- **Login**: `POST /api/login/email` returns a challenge,
  `POST /api/login/face` checks the face, `POST /api/login/verify`
  checks the signed challenge
    """,
    version=API_VERSION,
    lifespan=lifespan,
)

# Session cookies need explicit origins when credentials are allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(enrollment_router)
app.include_router(verification_link_router)
app.include_router(authentication_router)
app.include_router(management_router)


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    """Expected flow failures are returned verbatim."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies become 400 with field-level detail."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        }),
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    """Anything unexpected is logged in full and reported opaquely."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# ============================================================
# Health Check Endpoint
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["system"])
def health_check(flow: AuthFlow = Depends(get_flow)):
    """
    Check the health of the API and its storage.

    Returns the number of registered users and live sessions.
    """
    try:
        registered_users = flow.users.count_users()
        status = "healthy"
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        registered_users = 0
        status = "unhealthy"

    return HealthResponse(
        status=status,
        registered_users=registered_users,
        active_sessions=len(flow.sessions),
    )


@app.get("/", tags=["system"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "SecureFace Authentication API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    from core.config import get_server_config

    server = get_server_config()

    logger.info(f"Starting server on {server['host']}:{server['port']}")
    uvicorn.run(
        "api.app:app",
        host=server["host"],
        port=server["port"],
        reload=True,
        log_level="info",
    )
