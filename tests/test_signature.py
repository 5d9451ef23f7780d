from __future__ import annotations

import pytest

from oauthgate.oauth.signature import (
    OAuth1Header,
    base_string_uri,
    build_header,
    normalize_parameters,
    parse_header,
    percent_encode,
    signature_base_string,
    signing_key,
)

URL = "https://api.example.com/v1/oauth/request_token"


def _pinned(**kwargs) -> OAuth1Header:
    return OAuth1Header(consumer_key="ck", nonce="fixed-nonce", timestamp="1700000000", **kwargs)


def test_percent_encode_uses_unreserved_set_only():
    assert percent_encode("AZaz09-._~") == "AZaz09-._~"
    assert percent_encode("a b") == "a%20b"
    assert percent_encode("a+b/c=d&e") == "a%2Bb%2Fc%3Dd%26e"
    assert percent_encode("é") == "%C3%A9"


def test_base_string_uri_drops_query_fragment_and_default_port():
    assert base_string_uri("HTTPS://API.Example.com:443/v1/users/me?x=1#frag") == "https://api.example.com/v1/users/me"
    assert base_string_uri("http://example.com:8080") == "http://example.com:8080/"


def test_normalize_parameters_sorts_by_key_then_value():
    params = [("b", "2"), ("a", "z"), ("a", "y"), ("c", "")]
    assert normalize_parameters(params) == "a=y&a=z&b=2&c="


def test_signing_key_with_and_without_token_secret():
    assert signing_key("cs") == "cs&"
    assert signing_key("c s", "t&s") == "c%20s&t%26s"


def test_header_is_well_formed_with_single_signature():
    value = build_header("GET", URL, None, "ck", "cs")

    assert value.startswith("OAuth ")
    assert value.count("oauth_signature=") == 1

    fields = parse_header(value)
    assert fields["oauth_consumer_key"] == "ck"
    assert fields["oauth_signature_method"] == "HMAC-SHA256"
    assert fields["oauth_version"] == "1.0"
    assert "oauth_token" not in fields
    # base64 without padding
    assert "=" not in fields["oauth_signature"]


def test_header_includes_token_when_present():
    fields = parse_header(build_header("GET", URL, None, "ck", "cs", token="tok", token_secret="ts"))
    assert fields["oauth_token"] == "tok"
    # The token secret is part of the key, never of the header.
    assert "ts" not in fields.values()


def test_fresh_nonce_per_call():
    first = parse_header(build_header("GET", URL, None, "ck", "cs"))
    second = parse_header(build_header("GET", URL, None, "ck", "cs"))
    assert first["oauth_nonce"] != second["oauth_nonce"]


def test_signature_is_deterministic_for_pinned_nonce_and_timestamp():
    a = _pinned(token="tok", token_secret="ts").header("GET", URL, "cs")
    b = _pinned(token="tok", token_secret="ts").header("GET", URL, "cs")
    assert a == b


def test_signature_matches_known_vector():
    oauth = _pinned(token="tok", token_secret="t s")
    url = "https://api.example.com/v1/users/me?b=2&a=x%20y"
    body = [("c", "hello world!"), ("a", "~z")]

    expected_base = (
        "GET&https%3A%2F%2Fapi.example.com%2Fv1%2Fusers%2Fme&"
        "a%3Dx%2520y%26a%3D~z%26b%3D2%26c%3Dhello%2520world%2521%26"
        "oauth_consumer_key%3Dck%26oauth_nonce%3Dfixed-nonce%26"
        "oauth_signature_method%3DHMAC-SHA256%26oauth_timestamp%3D1700000000%26"
        "oauth_token%3Dtok%26oauth_version%3D1.0"
    )
    params = oauth.protocol_params() + body + [("b", "2"), ("a", "x y")]
    assert signature_base_string("GET", url, params) == expected_base
    assert signing_key("c&s", "t s") == "c%26s&t%20s"

    assert oauth.signature("GET", url, "c&s", body_params=body) == "1bHrFP/vNiSMRcmUqUEfpk3F+jtgW+6kFO36RP0QYrM"


def test_signature_independent_of_parameter_order():
    oauth = _pinned()
    one = oauth.signature("GET", URL, "cs", body_params=[("b", "2"), ("a", "1")])
    two = oauth.signature("GET", URL, "cs", body_params=[("a", "1"), ("b", "2")])
    assert one == two


def test_query_parameters_are_signed():
    oauth = _pinned()
    plain = oauth.signature("GET", URL, "cs")
    with_query = oauth.signature("GET", URL + "?page=2", "cs")
    assert plain != with_query


def test_token_secret_changes_signature():
    assert _pinned(token="tok", token_secret="a").signature("GET", URL, "cs") != _pinned(
        token="tok", token_secret="b"
    ).signature("GET", URL, "cs")


@pytest.mark.parametrize(
    "value",
    [
        'Bearer abc',
        'OAuth oauth_nonce=abc',
        'OAuth a="1",a="2"',
    ],
)
def test_parse_header_rejects_malformed(value):
    with pytest.raises(ValueError):
        parse_header(value)
