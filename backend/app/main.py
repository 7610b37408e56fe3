"""
FastAPI application entry point.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, InterfaceError, DisconnectionError
from app.api import health, students, invitations
from app.core.config import get_settings
from app.core.errors import AccessErrorCode, message_for
from app.services.scheduler import start_scheduler, stop_scheduler, add_sweeper_job

logger = logging.getLogger(__name__)

app_settings = get_settings()

app = FastAPI(
    title="Guardian Access API",
    description="Student guardians and email invitations",
    version="0.1.0",
)

# CORS middleware (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        app_settings.frontend_base_url,
        "http://localhost:3000",      # Frontend dev server (localhost)
        "http://127.0.0.1:3000",      # Frontend dev server (127.0.0.1)
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(students.router, prefix="/api", tags=["students"])
app.include_router(invitations.router, prefix="/api", tags=["invitations"])


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
@app.exception_handler(DisconnectionError)
async def store_unavailable_handler(request: Request, exc: Exception):
    """Database unreachable after retries: report StoreUnavailable instead of a bare 500."""
    logger.error(f"Store unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": {
            "reason": AccessErrorCode.STORE_UNAVAILABLE.value,
            "message": message_for(AccessErrorCode.STORE_UNAVAILABLE),
        }}
    )


@app.on_event("startup")
async def startup_event():
    """Start the invitation sweeper when enabled."""
    if not app_settings.enable_invitation_sweeper:
        return
    try:
        add_sweeper_job(app_settings.invitation_sweep_interval_minutes)
        start_scheduler()
    except Exception as e:
        logger.warning(f"Could not start invitation sweeper: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    stop_scheduler()
