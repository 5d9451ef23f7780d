# oauthgate/routes/oauth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oauthgate.core.clock import as_utc
from oauthgate.core.database import get_db
from oauthgate.dependencies.auth import get_current_session, get_request_ip
from oauthgate.dependencies.remote_api import get_remote_api
from oauthgate.models.session import UserSession
from oauthgate.schemas.oauth import LoginIn, LoginOut, RemoteProfileOut, RequestTokenOut
from oauthgate.services import token_exchange
from oauthgate.services.remote_api import (
    MalformedResponseError,
    RemoteApiClient,
    RemoteApiError,
    RemoteUnauthorizedError,
    TokenPair,
)
from oauthgate.services.request_tokens import (
    RequestTokenError,
    create_request_token,
    sign,
    verify_request_token,
)
from oauthgate.services.sessions import create_session, encode_session_token
from oauthgate.services.users import get_link_by_user_id, link_token_pair, upsert_remote_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/oauth", tags=["oauth"])

# Same message for unknown, expired, reused and forged flows.
FLOW_ERROR = "Invalid or expired login flow"


def _database_error() -> HTTPException:
    return HTTPException(status_code=500, detail="Database error")


def _remote_error(exc: RemoteApiError, action: str) -> HTTPException:
    if isinstance(exc, RemoteUnauthorizedError):
        logger.info("Remote API rejected %s", action)
        return HTTPException(status_code=401, detail="Application not authorized. Please try again.")
    if isinstance(exc, MalformedResponseError):
        logger.error("Remote API returned malformed data during %s: %s", action, exc)
    else:
        logger.warning("Remote API failure during %s: %s", action, exc)
    return HTTPException(status_code=502, detail="Remote service unavailable")


# -----------------------------
# Routes
# -----------------------------
@router.get("/request_token", response_model=RequestTokenOut)
def get_request_token(
    db: Session = Depends(get_db),
    remote: RemoteApiClient = Depends(get_remote_api),
):
    """
    Start a login flow.

    The client sends the user to the remote authorize page with
    ``oauth_token`` and keeps ``uuid`` + ``signature`` for ``/login``.
    """
    try:
        grant = token_exchange.request_token(remote)
    except RemoteApiError as exc:
        # 401 here means our consumer credentials are wrong: a server problem, not the client's.
        logger.error("Failed to get request token: %r", exc)
        raise HTTPException(status_code=500, detail="Failed to get request token.")

    try:
        record = create_request_token(db, grant.access_token, grant.token_secret, grant.ttl)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to insert request token into database")
        raise _database_error()

    return RequestTokenOut(
        uuid=record.id,
        signature=sign(record.id, record.token_secret),
        oauth_token=record.access_token,
        expires_at=as_utc(record.expires_at),
    )


@router.post("/login", response_model=LoginOut, response_model_exclude_none=True)
def login(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    remote: RemoteApiClient = Depends(get_remote_api),
):
    """
    Finish a login flow after the user authorized the request token.

    Consumes the flow (single use), exchanges it for an access token, links
    the remote account and, when ``login`` is true, opens a session.
    """
    try:
        flow = verify_request_token(db, payload.uuid, payload.signature)
    except RequestTokenError as exc:
        logger.debug("Rejected login flow %s: %s", payload.uuid, type(exc).__name__)
        raise HTTPException(status_code=400, detail=FLOW_ERROR)
    except SQLAlchemyError:
        raise _database_error()

    request_pair = TokenPair(access_token=flow.access_token, token_secret=flow.token_secret)

    try:
        pair = token_exchange.access_token(remote, request_pair)
        remote_id = token_exchange.resolve_identity(remote, pair)
        remote_user = token_exchange.get_user(remote, pair, remote_id)
    except RemoteApiError as exc:
        raise _remote_error(exc, "login")

    try:
        link = upsert_remote_link(db, remote_user, pair)
    except SQLAlchemyError:
        logger.exception("Failed to link remote account %s", remote_id)
        raise _database_error()

    if not payload.login:
        return LoginOut()

    try:
        session = create_session(db, link.user_id, get_request_ip(request))
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create session for user %s", link.user_id)
        raise _database_error()

    return LoginOut(
        session_token=encode_session_token(session),
        session_expires_at=as_utc(session.expires_at),
    )


@router.get("/user", response_model=RemoteProfileOut)
def get_remote_profile(
    current: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    remote: RemoteApiClient = Depends(get_remote_api),
):
    link = get_link_by_user_id(db, current.user_id)
    pair = link_token_pair(link) if link else None
    if link is None or pair is None:
        raise HTTPException(status_code=404, detail="Remote account not linked")

    try:
        remote_user = token_exchange.get_user(remote, pair, link.remote_id)
    except RemoteApiError as exc:
        raise _remote_error(exc, "profile fetch")

    return RemoteProfileOut(
        first_name=remote_user.name_first,
        last_name=remote_user.name_last,
        picture_url=remote_user.picture_url,
    )
