"""Service layer for sign-up, login and the cookie session."""
import logging
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from werkzeug.security import check_password_hash, generate_password_hash

from models.user import SessionUser

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
SESSION_KEY = "user"

class AuthError(Exception):
    """Raised when credentials are rejected or an account cannot be created."""

def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()

async def sign_up(users: AsyncIOMotorCollection, email: str, password: str, name: Optional[str] = None) -> SessionUser:
    """Creates an account. Raises AuthError for duplicates or weak passwords."""
    email = _normalize_email(email)
    if "@" not in email:
        raise AuthError("Unable to validate email address: invalid format")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
    try:
        if await users.find_one({"email": email}):
            logger.warning(f"Sign-up rejected, email already registered: {email}")
            raise AuthError("User already registered")
        result = await users.insert_one({
            "email": email,
            "name": (name or "").strip() or None,
            "password_hash": generate_password_hash(password),
            "created_at": datetime.now(timezone.utc),
        })
    except AuthError:
        raise
    except Exception as e:
        logger.error(f"Database error during sign-up for {email}: {e}")
        raise ConnectionError(f"Database error creating user: {e}")
    logger.info(f"Registered new user {email}.")
    return SessionUser(id=str(result.inserted_id), email=email)

async def authenticate(users: AsyncIOMotorCollection, email: str, password: str) -> SessionUser:
    """Checks a password login. Raises AuthError on any mismatch."""
    email = _normalize_email(email)
    try:
        doc = await users.find_one({"email": email})
    except Exception as e:
        logger.error(f"Database error looking up user {email}: {e}")
        raise ConnectionError(f"Database error during login: {e}")
    if not doc or not check_password_hash(doc.get("password_hash", ""), password or ""):
        logger.warning(f"Failed login attempt for {email}.")
        raise AuthError("Invalid login credentials")
    logger.info(f"User {email} logged in.")
    return SessionUser(id=str(doc["_id"]), email=email)

# --- Session helpers (operate on request.session) ---

def start_session(session: MutableMapping[str, Any], user: SessionUser) -> None:
    session.clear()
    session[SESSION_KEY] = user.model_dump()

def current_session_user(session: MutableMapping[str, Any]) -> Optional[SessionUser]:
    data = session.get(SESSION_KEY)
    if not data:
        return None
    try:
        return SessionUser(**data)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed session payload.")
        session.pop(SESSION_KEY, None)
        return None

def end_session(session: MutableMapping[str, Any]) -> Optional[SessionUser]:
    user = current_session_user(session)
    session.clear()
    return user
