# services/identity.py
"""
Identity resolution: session credential -> Principal.

The OAuth collaborator establishes the session (``issue_session``) after login.
On the request path the resolver only verifies the credential signature locally
and reads the server-side session record; it never calls the identity provider.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional, Protocol, Union

from psycopg2.extras import RealDictCursor

from security import create_session_token, decode_token, hash_session_id, new_session_id
from settings import settings


@dataclass(frozen=True)
class Principal:
    user_id: str
    company_id: str
    role: str
    permissions: frozenset[str] = field(default_factory=frozenset)


AuthErrorCode = Literal["UNAUTHENTICATED"]


@dataclass(frozen=True)
class AuthError:
    code: AuthErrorCode = "UNAUTHENTICATED"
    reason: str = ""


ResolveResult = Union[Principal, AuthError]


@dataclass(frozen=True)
class SessionRecord:
    principal: Principal
    expires_at: datetime
    revoked: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(Protocol):
    def save(self, session_hash: str, record: SessionRecord) -> None: ...
    def load(self, session_hash: str) -> Optional[SessionRecord]: ...
    def revoke(self, session_hash: str) -> bool: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, SessionRecord] = {}

    def save(self, session_hash: str, record: SessionRecord) -> None:
        with self._lock:
            self._rows[session_hash] = record

    def load(self, session_hash: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._rows.get(session_hash)

    def revoke(self, session_hash: str) -> bool:
        with self._lock:
            rec = self._rows.get(session_hash)
            if rec is None:
                return False
            self._rows[session_hash] = SessionRecord(rec.principal, rec.expires_at, revoked=True)
            return True


class PostgresSessionStore:
    """
    auth.sessions(session_hash PK, user_id, company_id, role, permissions text[],
                  expires_at, revoked_at)
    """

    def __init__(self, conn_factory=None) -> None:
        if conn_factory is None:
            from db import get_conn
            conn_factory = get_conn
        self._conn = conn_factory

    def save(self, session_hash: str, record: SessionRecord) -> None:
        p = record.principal
        with self._conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO auth.sessions
                      (session_hash, user_id, company_id, role, permissions, expires_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (session_hash, p.user_id, p.company_id, p.role, sorted(p.permissions), record.expires_at),
                )

    def load(self, session_hash: str) -> Optional[SessionRecord]:
        with self._conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT user_id::text AS user_id, company_id::text AS company_id,
                           role, permissions, expires_at, revoked_at
                    FROM auth.sessions
                    WHERE session_hash = %s
                    LIMIT 1
                    """,
                    (session_hash,),
                )
                row = cur.fetchone()
        if not row:
            return None
        principal = Principal(
            user_id=row["user_id"],
            company_id=row["company_id"],
            role=(row["role"] or "").strip().lower(),
            permissions=frozenset(row["permissions"] or ()),
        )
        return SessionRecord(principal, row["expires_at"], revoked=row["revoked_at"] is not None)

    def revoke(self, session_hash: str) -> bool:
        with self._conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE auth.sessions SET revoked_at = now() WHERE session_hash = %s AND revoked_at IS NULL",
                    (session_hash,),
                )
                return cur.rowcount == 1


class SessionPrincipalResolver:
    def __init__(self, sessions: SessionStore) -> None:
        self.sessions = sessions

    def issue_session(self, principal: Principal, *, minutes: Optional[int] = None) -> str:
        ttl = minutes or settings.SESSION_TTL_MINUTES
        sid = new_session_id()
        self.sessions.save(
            hash_session_id(sid),
            SessionRecord(principal=principal, expires_at=_utcnow() + timedelta(minutes=ttl)),
        )
        return create_session_token(sid, minutes=ttl)

    def revoke_session(self, session_token: str) -> bool:
        sid = decode_token(session_token).get("sid")
        if not sid:
            return False
        return self.sessions.revoke(hash_session_id(str(sid)))

    def resolve(self, session_token: Optional[str]) -> ResolveResult:
        if not session_token:
            return AuthError(reason="missing credential")

        sid = decode_token(session_token).get("sid")
        if not sid:
            return AuthError(reason="invalid credential")

        record = self.sessions.load(hash_session_id(str(sid)))
        if record is None:
            return AuthError(reason="unknown session")
        if record.revoked:
            return AuthError(reason="revoked session")
        if record.expires_at <= _utcnow():
            return AuthError(reason="expired session")
        return record.principal
