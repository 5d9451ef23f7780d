# oauthgate/dependencies/auth.py
from __future__ import annotations

import ipaddress
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from oauthgate.core.config import settings
from oauthgate.core.database import get_db
from oauthgate.models.session import UserSession
from oauthgate.services.sessions import verify_session_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

IP_MAX_LENGTH = 45


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_session(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserSession:
    """
    Validates:
      - Authorization: Bearer <session credential>
      - session exists, secret matches, not expired
    Returns:
      - UserSession SQLAlchemy model
    """
    if not creds or creds.scheme.lower() != "bearer":
        raise _unauthorized("Missing Authorization header")

    session = verify_session_token(db, creds.credentials)
    if session is None:
        raise _unauthorized("Invalid or expired session")

    return session


def get_request_ip(request: Request) -> str:
    """Best-effort client IP for session metadata. The `Forwarded` header is ignored (spoofable)."""
    if settings.TRUST_FORWARDED_FOR:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            first = xff.split(",")[0].strip()
            try:
                ip = str(ipaddress.ip_address(first))
            except ValueError:
                ip = ""
            # initial_ip is VARCHAR(45); an IPv6 scope id can push past it
            if ip and len(ip) <= IP_MAX_LENGTH:
                return ip
            logger.debug("Ignoring invalid X-Forwarded-For hop")
    if request.client:
        return request.client.host
    return "unknown"
