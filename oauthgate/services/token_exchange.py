"""
Three-legged OAuth 1.0a exchange against the remote platform.

The flow moves NotStarted -> RequestTokenObtained -> UserAuthorizedPending ->
AccessTokenObtained. This module holds no state between calls: the request
token lives in the request token store and the user authorizes it out of
band, so each function below is one transition.

Every call is a single attempt. Retry policy belongs to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import parse_qsl, quote, urljoin, urlsplit

from pydantic import ValidationError

from oauthgate.schemas.remote import RemoteUser
from oauthgate.services.remote_api import (
    MalformedResponseError,
    RemoteApiClient,
    RemoteRequestError,
    TokenPair,
    expect_status,
)

logger = logging.getLogger(__name__)

REQUEST_TOKEN_PATH = "oauth/request_token"
ACCESS_TOKEN_PATH = "oauth/access_token"
CURRENT_USER_PATH = "users/me"

_REDIRECT_STATUSES = (301, 302, 303, 307, 308)

__all__ = [
    "RequestTokenGrant",
    "TokenPair",
    "request_token",
    "access_token",
    "resolve_identity",
    "get_user",
]


@dataclass(frozen=True)
class RequestTokenGrant:
    """Unauthorized request token plus its advertised lifetime in seconds."""

    access_token: str
    token_secret: str = field(repr=False)
    ttl: int = 0

    @property
    def pair(self) -> TokenPair:
        return TokenPair(access_token=self.access_token, token_secret=self.token_secret)


def _parse_form(body: str, *keys: str) -> dict[str, str]:
    try:
        fields = dict(parse_qsl(body, keep_blank_values=True, strict_parsing=True))
    except ValueError as exc:
        raise MalformedResponseError("Remote API returned an unparseable token response") from exc

    missing = [k for k in keys if not fields.get(k)]
    if missing:
        raise MalformedResponseError(f"Token response missing fields: {', '.join(missing)}")
    return fields


def request_token(client: RemoteApiClient) -> RequestTokenGrant:
    """
    Obtain an unauthorized request token (no user token in the signature).

    Raises:
        RemoteUnauthorizedError: consumer key/secret rejected (misconfiguration).
        RemoteRequestError: any other status, or a transport failure.
        MalformedResponseError: the 200 body could not be parsed.
    """
    logger.debug("Getting oauth request token")
    response = expect_status(client.get(REQUEST_TOKEN_PATH), 200)

    fields = _parse_form(response.text, "oauth_token", "oauth_token_secret", "xoauth_token_ttl")
    try:
        ttl = int(fields["xoauth_token_ttl"])
    except ValueError as exc:
        raise MalformedResponseError("Token response has a non-numeric xoauth_token_ttl") from exc

    return RequestTokenGrant(
        access_token=fields["oauth_token"],
        token_secret=fields["oauth_token_secret"],
        ttl=ttl,
    )


def access_token(client: RemoteApiClient, pair: TokenPair) -> TokenPair:
    """
    Exchange an authorized request token for a permanent access token pair.

    A 401 means either the user has not authorized the request token yet or it
    expired. The remote API does not say which, so the caller must restart the
    flow in both cases.
    """
    logger.debug("Getting oauth access token")
    response = expect_status(client.get(ACCESS_TOKEN_PATH, token=pair), 200)

    fields = _parse_form(response.text, "oauth_token", "oauth_token_secret")
    return TokenPair(access_token=fields["oauth_token"], token_secret=fields["oauth_token_secret"])


def resolve_identity(client: RemoteApiClient, pair: TokenPair) -> str:
    """
    Return the remote user id for an access token pair.

    ``users/me`` answers with a redirect to ``users/{id}``. Following it would
    re-send the same nonce/timestamp, which the remote API rejects as a
    replay, so the redirect is not followed and the id is read from the
    ``Location`` header instead.
    """
    logger.debug("Getting user id")
    response = expect_status(
        client.get(CURRENT_USER_PATH, token=pair, follow_redirects=False),
        *_REDIRECT_STATUSES,
    )

    location = response.headers.get("location")
    if not location:
        raise RemoteRequestError("No location header", status_code=response.status_code)

    try:
        path = urlsplit(urljoin(client.base_url, location)).path
    except ValueError as exc:
        raise RemoteRequestError(f"Failed to parse redirect url: {location!r}") from exc

    segments = [s for s in path.split("/") if s]
    if not segments or not (segments[-1].isascii() and segments[-1].isdigit()):
        raise RemoteRequestError(f"No user id in redirect path: {path!r}")
    return segments[-1]


def get_user(client: RemoteApiClient, pair: TokenPair, remote_id: int | str) -> RemoteUser:
    logger.debug("Getting remote user %s", remote_id)
    path = f"users/{quote(str(remote_id), safe='')}"
    response = expect_status(client.get(path, token=pair, follow_redirects=False), 200)

    try:
        return RemoteUser.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise MalformedResponseError("Remote API returned an invalid user profile") from exc
