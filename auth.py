"""
auth.py
-------
Account registration, login and profile settings.

Registered users live in one JSON array under ``fintrack_users`` with a
bcrypt hash in place of the password. Logging in only hands back a
``Session``; the Streamlit UI keeps it in its per-browser state. API
clients get a random bearer token from ``issue_token``, stored under
``fintrack_session_<token>`` with an expiry.
"""

import json
import logging
import os
import secrets
from datetime import datetime, timedelta
from typing import List, Optional

import bcrypt
from dotenv import load_dotenv

from models import LANGUAGES, AuthenticationError, InvalidEntryError, Session, User, utcnow
from trackers import initialize_user_data

load_dotenv()
logger = logging.getLogger(__name__)

USERS_KEY = "fintrack_users"
SESSION_KEY_PREFIX = "fintrack_session"
SESSION_TTL = timedelta(hours=float(os.getenv("SESSION_TTL_HOURS", "12")))
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt ignores anything past this


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    encoded = password.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


def load_users(store) -> List[User]:
    blob = store.get(USERS_KEY)
    if not blob:
        return []
    return [User.model_validate(item) for item in json.loads(blob)]


def _save_users(store, users: List[User]) -> None:
    store.put(USERS_KEY, json.dumps([u.to_storage() for u in users]))


def _start_session(store, user: User) -> Session:
    return Session(user=user.public(), store=store)


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def signup(store, name: str, email: str, password: str, confirm_password: Optional[str] = None) -> Session:
    """Register a new account, create its empty lists and log it in."""
    name = (name or "").strip()
    email = _normalize_email(email)
    if not name or not email or not password:
        raise InvalidEntryError("Please fill in all fields")
    if confirm_password is not None and password != confirm_password:
        raise InvalidEntryError("Passwords do not match")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidEntryError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise InvalidEntryError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

    users = load_users(store)
    if any(u.email == email for u in users):
        raise AuthenticationError("Email already registered")

    user = User(name=name, email=email, password_hash=hash_password(password))
    users.append(user)
    _save_users(store, users)
    initialize_user_data(store, user.id)
    logger.info("Registered user %s", user.id)
    return _start_session(store, user)


def login(store, email: str, password: str) -> Session:
    email = _normalize_email(email)
    if not email or not password:
        raise InvalidEntryError("Please fill in all fields")

    user = next((u for u in load_users(store) if u.email == email), None)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt for %s", email)
        raise AuthenticationError("Invalid email or password")

    logger.info("User %s logged in", user.id)
    return _start_session(store, user)


def session_key(token: str) -> str:
    return f"{SESSION_KEY_PREFIX}_{token}"


def issue_token(session: Session, ttl: Optional[timedelta] = None) -> str:
    """
    Persist ``session`` under a fresh random token and return the token.

    The token is the only way back into the session, so it must be kept
    by the client (the API hands it out as a bearer token).
    """
    purge_expired_sessions(session.store)
    token = secrets.token_urlsafe(32)
    expires_at = utcnow() + (ttl if ttl is not None else SESSION_TTL)
    record = {"userId": session.user_id, "expiresAt": expires_at.isoformat()}
    session.store.put(session_key(token), json.dumps(record))
    session.token = token
    logger.info("Issued session token for user %s, valid until %s", session.user_id, expires_at)
    return token


def _expired(record: dict, now: datetime) -> bool:
    return datetime.fromisoformat(record["expiresAt"]) <= now


def purge_expired_sessions(store) -> int:
    """Delete every stored token past its expiry. Returns how many went."""
    now = utcnow()
    removed = 0
    for key in store.keys(f"{SESSION_KEY_PREFIX}_"):
        blob = store.get(key)
        if blob and _expired(json.loads(blob), now):
            store.delete(key)
            removed += 1
    if removed:
        logger.info("Purged %d expired session tokens", removed)
    return removed


def logout(session: Session) -> None:
    # Financial data stays put so the user can log back in.
    if session.token:
        session.store.delete(session_key(session.token))
        session.token = None
    logger.info("User %s logged out", session.user_id)


def restore_session(store, token: Optional[str]) -> Optional[Session]:
    """Session behind ``token``, or None when it is unknown or has expired."""
    if not token:
        return None
    key = session_key(token)
    blob = store.get(key)
    if not blob:
        return None

    record = json.loads(blob)
    if _expired(record, utcnow()):
        store.delete(key)
        logger.info("Dropped expired session token for user %s", record["userId"])
        return None

    user = next((u for u in load_users(store) if u.id == record["userId"]), None)
    if user is None:
        store.delete(key)
        return None
    return Session(user=user.public(), store=store, token=token)


def update_language(session: Session, language: str) -> User:
    if language not in LANGUAGES:
        raise InvalidEntryError(f"Unsupported language: {language}")

    users = load_users(session.store)
    users = [u.model_copy(update={"language": language}) if u.id == session.user_id else u for u in users]
    _save_users(session.store, users)

    session.user = session.user.model_copy(update={"language": language})
    return session.user


def reset_user_data(session: Session) -> None:
    """Wipe every expense, goal and investment for the session's user."""
    initialize_user_data(session.store, session.user_id)
    logger.info("Reset all data for user %s", session.user_id)
