from __future__ import annotations

import os

from fastapi import APIRouter

from settings import settings

router = APIRouter(tags=["health"])


def _check_db() -> tuple[bool | None, str | None]:
    if not (settings.DATABASE_URL or "").strip():
        return None, None
    try:
        from db import get_conn

        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, f"{type(exc).__name__}: {exc}"


def _resolve_git_sha() -> str | None:
    return (os.getenv("GIT_SHA") or "").strip() or None


@router.get("/health")
def health():
    return {
        "ok": True,
        "env": settings.ENV,
        "settlement_provider": settings.SETTLEMENT_PROVIDER,
        "git_sha": _resolve_git_sha(),
    }


@router.get("/readyz")
def readyz():
    db_ok, db_error = _check_db()
    return {
        "ready": db_ok is not False,
        "version": os.getenv("APP_VERSION", "1.0.0"),
        "db_ok": db_ok,
        "db_error": db_error,
    }
