"""Firebase Authentication client for the signed-in user session."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import requests
from pydantic import BaseModel

from .config import get_config

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
REFRESH_URL = "https://securetoken.googleapis.com/v1/token"
REQUEST_TIMEOUT = 30
EXPIRY_MARGIN = timedelta(seconds=60)


class AuthError(RuntimeError):
    """Sign-in or token refresh was rejected."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class NotSignedInError(AuthError):
    def __init__(self) -> None:
        super().__init__("Not signed in. Run `jobtracker login` first.", "NOT_SIGNED_IN")


class Session(BaseModel):
    """A signed-in Firebase user."""

    user_id: str
    email: Optional[str] = None
    id_token: str
    refresh_token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - EXPIRY_MARGIN


def _expiry(expires_in: str) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


def _post(url: str, **kwargs) -> dict:
    config = get_config()
    response = requests.post(
        url, params={"key": config.firebase_api_key}, timeout=REQUEST_TIMEOUT, **kwargs
    )
    if not response.ok:
        try:
            code = response.json().get("error", {}).get("message", "")
        except ValueError:
            code = ""
        raise AuthError(
            f"Authentication failed ({response.status_code}): {code or response.reason}",
            code or None,
        )
    return response.json()


def _session_path() -> Path:
    return get_config().session_file


def save_session(session: Session) -> None:
    path = _session_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(session.model_dump_json())
    logger.info(f"Saved session to {path}")


def load_session() -> Optional[Session]:
    path = _session_path()
    if not path.exists():
        return None
    return Session.model_validate_json(path.read_text())


def sign_in(email: str, password: str) -> Session:
    """Sign in with email and password and persist the session."""
    data = _post(
        SIGN_IN_URL,
        json={"email": email, "password": password, "returnSecureToken": True},
    )
    session = Session(
        user_id=data["localId"],
        email=data.get("email", email),
        id_token=data["idToken"],
        refresh_token=data["refreshToken"],
        expires_at=_expiry(data["expiresIn"]),
    )
    save_session(session)
    logger.info(f"Signed in as {session.email}")
    return session


def refresh_session(session: Session) -> Session:
    """Exchange the refresh token for a fresh ID token."""
    logger.info("Refreshing expired Firebase session")
    data = _post(
        REFRESH_URL,
        data={"grant_type": "refresh_token", "refresh_token": session.refresh_token},
    )
    refreshed = session.model_copy(
        update={
            "user_id": data.get("user_id", session.user_id),
            "id_token": data["id_token"],
            "refresh_token": data["refresh_token"],
            "expires_at": _expiry(data["expires_in"]),
        }
    )
    save_session(refreshed)
    return refreshed


def current_session() -> Optional[Session]:
    """Return a valid session for the current user, or None if nobody is signed in."""
    session = load_session()
    if session is None:
        return None
    if session.is_expired():
        session = refresh_session(session)
    return session


def require_session() -> Session:
    session = current_session()
    if session is None:
        raise NotSignedInError()
    return session


def sign_out() -> None:
    """Forget the stored session."""
    path = _session_path()
    if path.exists():
        path.unlink()
        logger.info("Signed out")
