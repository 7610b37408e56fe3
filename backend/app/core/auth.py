"""
Authentication utilities and dependencies.

The identity provider itself (passwords, email verification) lives outside
this service; it hands us a signed session cookie describing the principal.
"""
from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
from app.core.database import get_db
from app.core.config import SESSION_SECRET, SESSION_COOKIE_NAME
from app.core.errors import AccessErrorCode, raise_for_reason
from app.models.profile import Profile, ProfileRole
from app.services.access_policy import normalize_email
import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = timedelta(hours=24)

__all__ = ['create_session', 'verify_session', 'ensure_profile', 'lookup_profile_by_email', 'get_current_principal']


def _sign(payload: str) -> str:
    return hmac.new(
        SESSION_SECRET.encode() if SESSION_SECRET else b'default-secret-change-in-prod',
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


def create_session(user_id: int, email: str, role: str = 'guardian', name: Optional[str] = None) -> str:
    """Create a signed session token."""
    session_data = {
        'user_id': user_id,
        'email': email,
        'role': role,
        'name': name,
        'created_at': datetime.now(timezone.utc).isoformat(),
    }
    session_json = json.dumps(session_data, sort_keys=True)
    return f"{session_json}.{_sign(session_json)}"


def verify_session(session_token: str) -> Optional[dict]:
    """Verify and get session data."""
    if not session_token:
        return None

    try:
        parts = session_token.rsplit('.', 1)
        if len(parts) != 2:
            return None

        session_json, signature = parts
        if not hmac.compare_digest(signature, _sign(session_json)):
            return None

        session_data = json.loads(session_json)

        # Check expiration (24 hours)
        created_at = datetime.fromisoformat(session_data['created_at'])
        if datetime.now(timezone.utc) - created_at.replace(tzinfo=timezone.utc) > SESSION_MAX_AGE:
            return None

        return session_data
    except (ValueError, KeyError, TypeError):
        return None


def lookup_profile_by_email(db: Session, email: str, role: Optional[str] = None) -> Optional[Profile]:
    """Find a profile by (case-insensitive) email, optionally restricted to a role."""
    query = db.query(Profile).filter(Profile.email == normalize_email(email))
    if role:
        query = query.filter(Profile.role == role)
    return query.first()


def ensure_profile(db: Session, user_id: int, email: str, role: Optional[str] = None, name: Optional[str] = None) -> Profile:
    """
    Return the profile for an authenticated user, creating it on first login.

    Args:
        db: Database session
        user_id: Identity provider user ID (becomes profiles.id)
        email: User's email
        role: 'guardian' or 'student' from the identity provider (default guardian)
        name: Display name (optional)

    Returns:
        Profile object

    Raises:
        HTTPException: 409 EmailInUse when another profile already owns the email
    """
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile:
        return profile

    # Email already bound to a different profile id
    owner = lookup_profile_by_email(db, email)
    if owner:
        logger.warning(f"Session user {user_id} presented an email owned by profile {owner.id}")
        raise_for_reason(AccessErrorCode.EMAIL_IN_USE)

    if role not in (ProfileRole.GUARDIAN.value, ProfileRole.STUDENT.value):
        role = ProfileRole.GUARDIAN.value

    profile = Profile(
        id=user_id,
        email=normalize_email(email),
        role=role,
        name=name or ""
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        profile = db.query(Profile).filter(Profile.id == user_id).first()
        if profile:
            return profile
        if lookup_profile_by_email(db, email):
            raise_for_reason(AccessErrorCode.EMAIL_IN_USE)
        raise

    db.refresh(profile)
    logger.info(f"Created {role} profile {profile.id} on first login")
    return profile


def get_current_principal(
    request: Request,
    db: Session = Depends(get_db)
) -> Profile:
    """Dependency to get the current authenticated principal's profile."""
    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    session_data = verify_session(session_token)
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session"
        )

    return ensure_profile(
        db,
        session_data['user_id'],
        session_data['email'],
        session_data.get('role'),
        session_data.get('name'),
    )
