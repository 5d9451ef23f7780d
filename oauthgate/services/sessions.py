"""
Persistent login sessions and their bearer credential.

The credential handed to clients is base64 (no padding) of a tagged JSON
payload ``{"type": "User", "id": <session id>, "signature": <session token>}``.
The ``type`` tag leaves room for other credential kinds later without
breaking tokens already issued.
"""
from __future__ import annotations

import base64
import binascii
import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete
from sqlalchemy.orm import Session

from oauthgate.core.clock import as_utc, now_utc
from oauthgate.core.config import settings
from oauthgate.models.session import UserSession
from oauthgate.oauth.signature import b64encode_nopad

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32


class SessionTokenDecodeError(ValueError):
    """Raised when a bearer credential is not valid base64 or not a known payload."""


class SessionToken(BaseModel):
    type: Literal["User"]
    id: str
    signature: str


# -------------------------
# Codec
# -------------------------
def encode_session_token(session: UserSession) -> str:
    token = SessionToken(type="User", id=str(session.id), signature=session.token)
    return b64encode_nopad(token.model_dump_json().encode("utf-8"))


def decode_session_token(value: str) -> SessionToken:
    raw = (value or "").strip()
    if not raw or "=" in raw:
        raise SessionTokenDecodeError("Invalid session token encoding")

    try:
        payload = base64.b64decode(raw + "=" * (-len(raw) % 4), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SessionTokenDecodeError("Invalid session token encoding") from exc

    try:
        return SessionToken.model_validate_json(payload)
    except ValidationError as exc:
        raise SessionTokenDecodeError("Invalid session token payload") from exc


# -------------------------
# Store
# -------------------------
def generate_session_secret() -> str:
    return b64encode_nopad(secrets.token_bytes(SESSION_TOKEN_BYTES))


def session_expiry() -> datetime:
    return now_utc() + timedelta(days=settings.SESSION_TTL_DAYS)


def create_session(db: Session, user_id: int, source_ip: str) -> UserSession:
    session = UserSession(
        id=uuid.uuid4(),
        user_id=user_id,
        token=generate_session_secret(),
        initial_ip=source_ip,
        expires_at=session_expiry(),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Created session %s for user %s", session.id, user_id)
    return session


def _coerce_id(value: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def get_session(db: Session, session_id: uuid.UUID | str) -> UserSession | None:
    parsed = _coerce_id(session_id)
    if parsed is None:
        return None
    return db.get(UserSession, parsed)


def verify_session_token(db: Session, bearer: str) -> UserSession | None:
    """
    Resolve a bearer credential to its live session.

    Undecodable input, an unknown id, a wrong secret and an expired session
    all return None so callers cannot tell them apart.
    """
    try:
        token = decode_session_token(bearer)
    except SessionTokenDecodeError:
        logger.debug("Rejected undecodable session token")
        return None

    session = get_session(db, token.id)
    if session is None:
        return None

    if not hmac.compare_digest(session.token.encode("utf-8"), token.signature.encode("utf-8")):
        logger.debug("Invalid token for session %s", session.id)
        return None

    if as_utc(session.expires_at) <= now_utc():
        return None

    return session


def delete_session(db: Session, session_id: uuid.UUID | str) -> None:
    """Idempotent logout."""
    parsed = _coerce_id(session_id)
    if parsed is None:
        return
    db.execute(
        delete(UserSession)
        .where(UserSession.id == parsed)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def purge_expired_sessions(db: Session, now: datetime | None = None) -> int:
    cutoff = now or now_utc()
    result = db.execute(
        delete(UserSession)
        .where(UserSession.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
