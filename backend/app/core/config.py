"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
"""
import os
from typing import Optional

# Try to import local config (gitignored)
try:
    from app.config_local import (
        DATABASE_DSN,
        SESSION_COOKIE_NAME,
        SESSION_SECRET,
        SMTP_HOST,
        SMTP_PORT,
        SMTP_USE_SSL,
        SMTP_USERNAME,
        SMTP_PASSWORD,
        SMTP_FROM_EMAIL,
        SMTP_FROM_NAME,
        FRONTEND_BASE_URL,
    )
    # Invitation settings with fallbacks if not present
    try:
        from app.config_local import (
            INVITATION_EXPIRY_HOURS,
            INVITATION_REMINDER_HOURS,
            ENABLE_INVITATION_SWEEPER,
            INVITATION_SWEEP_INTERVAL_MINUTES,
        )
    except ImportError:
        INVITATION_EXPIRY_HOURS = 48
        INVITATION_REMINDER_HOURS = 12
        ENABLE_INVITATION_SWEEPER = False
        INVITATION_SWEEP_INTERVAL_MINUTES = 60
except ImportError:
    # Fallback defaults (environment first, then development values)
    DATABASE_DSN: Optional[str] = os.environ.get("DATABASE_DSN", "sqlite:///./guardian_access.db")
    SESSION_COOKIE_NAME: str = os.environ.get("SESSION_COOKIE_NAME", "guardian_session")
    SESSION_SECRET: Optional[str] = os.environ.get("SESSION_SECRET")
    SMTP_HOST: Optional[str] = os.environ.get("SMTP_HOST")
    SMTP_PORT: int = int(os.environ.get("SMTP_PORT", "465"))
    SMTP_USE_SSL: bool = True
    SMTP_USERNAME: Optional[str] = os.environ.get("SMTP_USERNAME")
    SMTP_PASSWORD: Optional[str] = os.environ.get("SMTP_PASSWORD")
    SMTP_FROM_EMAIL: Optional[str] = os.environ.get("SMTP_FROM_EMAIL")
    SMTP_FROM_NAME: str = "HomeSchool Transcripts"
    FRONTEND_BASE_URL: str = os.environ.get("FRONTEND_BASE_URL", "http://localhost:3000")
    INVITATION_EXPIRY_HOURS: int = int(os.environ.get("INVITATION_EXPIRY_HOURS", "48"))
    INVITATION_REMINDER_HOURS: int = 12  # Send reminder when this close to expiry
    ENABLE_INVITATION_SWEEPER: bool = os.environ.get("ENABLE_INVITATION_SWEEPER", "").lower() in ("1", "true", "yes")
    INVITATION_SWEEP_INTERVAL_MINUTES: int = 60


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_dsn": DATABASE_DSN,
        "session_cookie_name": SESSION_COOKIE_NAME,
        "session_secret": SESSION_SECRET,
        "smtp_host": SMTP_HOST,
        "smtp_port": SMTP_PORT,
        "smtp_use_ssl": SMTP_USE_SSL,
        "smtp_username": SMTP_USERNAME,
        "smtp_password": SMTP_PASSWORD,
        "smtp_from_email": SMTP_FROM_EMAIL,
        "smtp_from_name": SMTP_FROM_NAME,
        "frontend_base_url": FRONTEND_BASE_URL,
        "invitation_expiry_hours": INVITATION_EXPIRY_HOURS,
        "invitation_reminder_hours": INVITATION_REMINDER_HOURS,
        "enable_invitation_sweeper": ENABLE_INVITATION_SWEEPER,
        "invitation_sweep_interval_minutes": INVITATION_SWEEP_INTERVAL_MINUTES,
    })()
