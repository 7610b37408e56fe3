"""
Invitation token generation.

Tokens are opaque lookup keys, not signed payloads, so there is no decode step.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from app.core.config import INVITATION_EXPIRY_HOURS

TOKEN_BYTES = 32  # 256 bits of entropy


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate(now: Optional[datetime] = None, expiry_hours: Optional[int] = None) -> Tuple[str, datetime]:
    """
    Generate a new invitation token and its expiry timestamp.

    Args:
        now: Reference time (defaults to current UTC time)
        expiry_hours: Validity window (defaults to INVITATION_EXPIRY_HOURS)

    Returns:
        (token, expires_at) tuple
    """
    now = as_utc(now) if now else utcnow()
    hours = expiry_hours if expiry_hours is not None else INVITATION_EXPIRY_HOURS
    token = secrets.token_urlsafe(TOKEN_BYTES)
    return token, now + timedelta(hours=hours)


def is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    now = as_utc(now) if now else utcnow()
    return now > as_utc(expires_at)


def mask_token(token: Optional[str]) -> str:
    """Short fingerprint safe to write to logs in place of a token."""
    if not token:
        return "<none>"
    return "tok:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:8]
