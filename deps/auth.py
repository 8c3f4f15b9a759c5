# deps/auth.py
import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from deps.services import get_resolver
from services.identity import AuthError, Principal, SessionPrincipalResolver

logger = logging.getLogger("creatorpay.auth")

bearer = HTTPBearer(auto_error=False)


def get_current_principal(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    resolver: SessionPrincipalResolver = Depends(get_resolver),
) -> Principal:
    if not creds:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    # must be "Bearer"
    if (creds.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    result = resolver.resolve(creds.credentials)
    if isinstance(result, AuthError):
        logger.info("unauthenticated request reason=%s", result.reason)
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")
    return result
