"""
Signed HTTP access to the remote OAuth 1.0a platform.

Provides an explicitly constructed client handle (owned by the application
lifespan, not a module global) and a closed set of exceptions so routes can
map failures once without inspecting httpx errors or raw status codes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import quote, urlencode, urljoin

import httpx

from oauthgate.core.config import Settings, settings as app_settings
from oauthgate.oauth.signature import OAuth1Header, Param

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RemoteApiError(Exception):
    """Base exception for remote API failures."""


class RemoteUnauthorizedError(RemoteApiError):
    """Raised when the remote API answers 401 Unauthorized."""


class RemoteRequestError(RemoteApiError):
    """Raised for any unexpected status code or failed call."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTransportError(RemoteRequestError):
    """Raised on network errors and timeouts."""


class MalformedResponseError(RemoteApiError):
    """Raised when the remote API returns a body that cannot be parsed."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPair:
    """An OAuth token and its secret, as issued by the remote API."""

    access_token: str
    token_secret: str = field(repr=False)


def expect_status(response: httpx.Response, *expected: int) -> httpx.Response:
    """Return ``response`` if its status is expected, otherwise raise the matching error."""
    status = response.status_code
    if status in expected:
        return response
    if status == 401:
        raise RemoteUnauthorizedError("Remote API rejected the request (401)")
    logger.debug("Unexpected remote API status code: %s", status)
    raise RemoteRequestError(f"Unexpected status code: {status}", status_code=status)


class RemoteApiClient:
    def __init__(
        self,
        http: httpx.Client,
        *,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 10.0,
    ) -> None:
        self._http = http
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.consumer_key = consumer_key
        self._consumer_secret = consumer_secret
        self.timeout = timeout

    def url_for(self, path: str, query: list[Param] | None = None) -> str:
        # Paths are code constants. Never pass user input here (path traversal).
        url = urljoin(self.base_url, path.lstrip("/"))
        if query:
            url += ("&" if "?" in url else "?") + urlencode(query, quote_via=quote)
        return url

    def get(
        self,
        path: str,
        *,
        query: list[Param] | None = None,
        token: TokenPair | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        """
        Send a signed GET request. One attempt, bounded by ``timeout``.

        Raises:
            RemoteTransportError: on network failure or timeout.
        """
        url = self.url_for(path, query)
        oauth = OAuth1Header(
            consumer_key=self.consumer_key,
            token=token.access_token if token else None,
            token_secret=token.token_secret if token else None,
        )
        headers = {
            "Accept": "application/json",
            "Authorization": oauth.header("GET", url, self._consumer_secret),
        }

        logger.debug("Remote API GET %s", path)
        try:
            return self._http.get(
                url,
                headers=headers,
                follow_redirects=follow_redirects,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RemoteTransportError(f"Remote API request timed out: {path}") from exc
        except httpx.HTTPError as exc:
            raise RemoteTransportError(f"Remote API request failed: {path}") from exc

    def close(self) -> None:
        self._http.close()


def build_remote_api_client(
    settings: Settings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> RemoteApiClient:
    cfg = settings or app_settings
    http = httpx.Client(timeout=cfg.REMOTE_API_TIMEOUT_SECONDS, transport=transport)
    return RemoteApiClient(
        http,
        base_url=cfg.REMOTE_API_BASE_URL,
        consumer_key=cfg.REMOTE_CONSUMER_KEY,
        consumer_secret=cfg.REMOTE_CONSUMER_SECRET,
        timeout=cfg.REMOTE_API_TIMEOUT_SECONDS,
    )
