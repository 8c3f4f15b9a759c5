from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import hashlib
import secrets

from jose import jwt, JWTError

from settings import settings


# -----------------------
# Session credentials (JWT carrying an opaque session id)
# -----------------------
def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def hash_session_id(session_id: str) -> str:
    # only the hash is stored server-side
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()


def create_session_token(session_id: str, minutes: Optional[int] = None) -> str:
    exp_minutes = minutes or settings.SESSION_TTL_MINUTES
    now = datetime.now(timezone.utc)
    payload = {
        "sid": session_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=exp_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return {}
