"""
Request token store.

A login flow is identified by a random UUID handed to the client together with
HMAC-SHA512(token_secret, uuid bytes). The token secret itself never leaves
the server, so the client can only complete a flow it was issued, and only
once: verification deletes the row, and only the caller whose DELETE removed
it succeeds.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oauthgate.core.clock import as_utc, now_utc
from oauthgate.models.request_token import RequestToken
from oauthgate.oauth.signature import b64encode_nopad

logger = logging.getLogger(__name__)


class RequestTokenError(Exception):
    """Base exception for a bad or stale login flow handle."""


class InvalidFlowIdError(RequestTokenError):
    """Raised when the flow id is unknown, malformed or already used."""


class ExpiredFlowError(InvalidFlowIdError):
    """Raised when the flow id exists but is past its expiry."""


class InvalidSignatureError(RequestTokenError):
    """Raised when the presented signature does not match the flow id."""


def _coerce_id(value: uuid.UUID | str | None) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def sign(token_id: uuid.UUID, token_secret: str) -> str:
    """HMAC-SHA512 keyed by the token secret over the 16 raw id bytes, base64 without padding."""
    digest = hmac.new(token_secret.encode("utf-8"), token_id.bytes, hashlib.sha512).digest()
    return b64encode_nopad(digest)


def create_request_token(db: Session, access_token: str, token_secret: str, ttl_seconds: int) -> RequestToken:
    record = RequestToken(
        id=uuid.uuid4(),
        access_token=access_token,
        token_secret=token_secret,
        expires_at=now_utc() + timedelta(seconds=int(ttl_seconds)),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def get_request_token(db: Session, token_id: uuid.UUID | str) -> RequestToken | None:
    """Point lookup. Expired rows are treated as absent even if the sweeper has not removed them yet."""
    parsed = _coerce_id(token_id)
    if parsed is None:
        return None
    record = db.get(RequestToken, parsed)
    if record is None or as_utc(record.expires_at) <= now_utc():
        return None
    return record


def _consume(db: Session, token_id: uuid.UUID) -> bool:
    result = db.execute(
        delete(RequestToken)
        .where(RequestToken.id == token_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def verify_request_token(db: Session, claimed_id: uuid.UUID | str, claimed_signature: str) -> RequestToken:
    """
    Check a flow handle and consume it.

    Returns the (now deleted, detached) record so the caller can continue the
    exchange with its token pair.

    Raises:
        InvalidFlowIdError: unknown, malformed or already consumed id.
        ExpiredFlowError: the flow is past ``expires_at``.
        InvalidSignatureError: the signature does not match. The flow is kept.
        SQLAlchemyError: the delete could not be committed.
    """
    token_id = _coerce_id(claimed_id)
    if token_id is None:
        raise InvalidFlowIdError("Malformed login flow id")

    record = db.get(RequestToken, token_id)
    if record is None:
        raise InvalidFlowIdError("Unknown login flow id")

    if as_utc(record.expires_at) <= now_utc():
        logger.debug("Request token %s expired", token_id)
        delete_request_token(db, token_id)
        raise ExpiredFlowError("Login flow expired")

    expected = sign(record.id, record.token_secret)
    if not hmac.compare_digest(expected.encode("utf-8"), (claimed_signature or "").encode("utf-8")):
        logger.debug("Request token %s signature mismatch", token_id)
        raise InvalidSignatureError("Login flow signature mismatch")

    try:
        if not _consume(db, token_id):
            # Another verify (or the sweeper) removed it between our read and delete.
            db.rollback()
            raise InvalidFlowIdError("Login flow already used")
        db.expunge(record)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to consume request token %s", token_id)
        raise

    return record


def delete_request_token(db: Session, token_id: uuid.UUID | str) -> None:
    """Idempotent delete. Failures are logged, not raised: the expiry sweeper is the backstop."""
    parsed = _coerce_id(token_id)
    if parsed is None:
        return
    try:
        _consume(db, parsed)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Failed to delete request token %s", parsed, exc_info=True)


def purge_expired_request_tokens(db: Session, now: datetime | None = None) -> int:
    cutoff = now or now_utc()
    result = db.execute(
        delete(RequestToken)
        .where(RequestToken.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
