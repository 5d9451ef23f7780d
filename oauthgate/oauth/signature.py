# oauthgate/oauth/signature.py
"""
OAuth 1.0a request signing (HMAC-SHA256).

Responsibilities:
- Percent-encoding with the OAuth unreserved set (RFC 5849 section 3.6)
- Parameter normalization and the signature base string
- The `Authorization: OAuth ...` header value for an outbound request

Everything here is pure: no network, no storage, no settings. A fresh nonce
and timestamp are generated per header unless the caller pins them.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import time
import uuid
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import parse_qsl, quote, unquote, urlsplit, urlunsplit

SIGNATURE_METHOD = "HMAC-SHA256"
OAUTH_VERSION = "1.0"

_DEFAULT_PORTS = {"http": 80, "https": 443}

Param = tuple[str, str]


# -------------------------
# Encoding helpers
# -------------------------
def percent_encode(value: str) -> str:
    """
    Encode everything except ALPHA, DIGIT, "-", ".", "_" and "~".

    This is stricter than form encoding: spaces become %20 (never "+") and
    "/" is always escaped.
    """
    return quote(str(value).encode("utf-8"), safe="")


def b64encode_nopad(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii").rstrip("=")


def generate_nonce() -> str:
    # 128 random bits per request
    return str(uuid.uuid4())


def generate_timestamp() -> str:
    return str(int(time.time()))


# -------------------------
# Signature base string
# -------------------------
def sort_params(params: Iterable[Param]) -> list[Param]:
    """Sort by key, then by value for repeated keys."""
    return sorted((str(k), str(v)) for k, v in params)


def normalize_parameters(params: Iterable[Param]) -> str:
    return "&".join(f"{percent_encode(k)}={percent_encode(v)}" for k, v in sort_params(params))


def query_params(url: str) -> list[Param]:
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


def base_string_uri(url: str) -> str:
    """Scheme, authority and path only: the query string and fragment are dropped."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port is not None and parts.port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    return urlunsplit((scheme, netloc, parts.path or "/", "", ""))


def signature_base_string(method: str, url: str, params: Iterable[Param]) -> str:
    normalized = normalize_parameters(params)
    return "&".join(
        [
            method.upper(),
            percent_encode(base_string_uri(url)),
            percent_encode(normalized),
        ]
    )


def signing_key(consumer_secret: str, token_secret: str | None = None) -> str:
    return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"


def sign_hmac_sha256(base_string: str, key: str) -> str:
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha256).digest()
    return b64encode_nopad(digest)


# -------------------------
# Header
# -------------------------
@dataclass(frozen=True)
class OAuth1Header:
    """
    OAuth 1.0a protocol parameters for a single request.

    Attributes:
        consumer_key: Application key issued by the remote platform.
        token: User (request or access) token, if the request acts for a user.
        token_secret: Secret paired with ``token``; part of the signing key only.
        nonce: Single-use random value. Defaults to a fresh UUID4.
        timestamp: Seconds since epoch. Defaults to now.
    """

    consumer_key: str
    token: str | None = None
    token_secret: str | None = field(default=None, repr=False)
    nonce: str = field(default_factory=generate_nonce)
    timestamp: str = field(default_factory=generate_timestamp)

    def protocol_params(self) -> list[Param]:
        params: list[Param] = [
            ("oauth_consumer_key", self.consumer_key),
            ("oauth_signature_method", SIGNATURE_METHOD),
            ("oauth_timestamp", self.timestamp),
            ("oauth_nonce", self.nonce),
            ("oauth_version", OAUTH_VERSION),
        ]
        if self.token:
            params.append(("oauth_token", self.token))
        return params

    def signature(
        self,
        method: str,
        url: str,
        consumer_secret: str,
        body_params: Iterable[Param] | None = None,
    ) -> str:
        params = self.protocol_params()
        if body_params:
            params.extend(body_params)
        params.extend(query_params(url))

        base_string = signature_base_string(method, url, params)
        return sign_hmac_sha256(base_string, signing_key(consumer_secret, self.token_secret))

    def header(
        self,
        method: str,
        url: str,
        consumer_secret: str,
        body_params: Iterable[Param] | None = None,
    ) -> str:
        params = self.protocol_params()
        params.append(("oauth_signature", self.signature(method, url, consumer_secret, body_params)))
        return "OAuth " + ",".join(f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sort_params(params))


def build_header(
    method: str,
    url: str,
    body_params: Iterable[Param] | None,
    consumer_key: str,
    consumer_secret: str,
    token: str | None = None,
    token_secret: str | None = None,
) -> str:
    """Return a freshly signed ``Authorization`` header value for one request."""
    oauth = OAuth1Header(consumer_key=consumer_key, token=token, token_secret=token_secret)
    return oauth.header(method, url, consumer_secret, body_params)


def parse_header(value: str) -> dict[str, str]:
    """
    Parse an ``OAuth k="v",...`` header into a dict.

    Raises:
        ValueError: if the value is not a well-formed OAuth header or repeats a key.
    """
    prefix = "OAuth "
    if not value.startswith(prefix):
        raise ValueError("Missing OAuth scheme")

    out: dict[str, str] = {}
    for item in value[len(prefix):].split(","):
        key, sep, quoted = item.strip().partition("=")
        if not sep or len(quoted) < 2 or not (quoted.startswith('"') and quoted.endswith('"')):
            raise ValueError(f"Malformed OAuth header field: {item!r}")
        key = unquote(key)
        if key in out:
            raise ValueError(f"Duplicate OAuth header field: {key}")
        out[key] = unquote(quoted[1:-1])
    return out
