import hashlib
import hmac

import httpx
import pytest

from apisign.signing.errors import SigningError
from apisign.signing.models import SignatureConfig, SigningKey
from apisign.signing.signer import SignatureAuth, compute_signature, sign, signed_headers

# HMAC-SHA256('POST:/api/surveys:1700000000:{"title":"Test"}', key='dev-secret')
SCENARIO_SIGNATURE = "51443bb610c14d4e71c9165dd0cf509010f1868fa9f80ba7be4d5a0747576c91"
# HMAC-SHA256('GET:/api/surveys:1700000000', key='dev-secret')
GET_SIGNATURE = "f31d132dd3df1a94108fa07b3cef035e17173fa804509446fe738fd7d66ea829"


@pytest.fixture
def config():
    return SignatureConfig(key=SigningKey("dev-secret"), expiration_window_ms=300_000)


def test_scenario_signature_is_pinned(config):
    signed = sign(config, "POST", "/api/surveys", '{"title":"Test"}', now=1700000000)
    assert signed.timestamp == 1700000000
    assert signed.signature == SCENARIO_SIGNATURE


def test_bodyless_signature_is_pinned(config):
    assert sign(config, "GET", "/api/surveys", now=1700000000.9).signature == GET_SIGNATURE


def test_signature_matches_stdlib_hmac(config):
    message = b"DELETE:/api/roles/3:1700000123"
    expected = hmac.new(b"dev-secret", message, hashlib.sha256).hexdigest()
    assert compute_signature(config.key, "DELETE", "/api/roles/3", 1700000123) == expected


def test_signature_is_lowercase_hex(config):
    signature = sign(config, "GET", "/api/users").signature
    assert len(signature) == 64
    assert signature == signature.lower()
    int(signature, 16)


def test_empty_key_fails_loudly():
    config = SignatureConfig(key=SigningKey(""))
    with pytest.raises(SigningError):
        sign(config, "GET", "/api/users")


def test_signed_headers_use_configured_names():
    config = SignatureConfig(
        key=SigningKey("dev-secret"),
        header_name="X-Custom-Sig",
        timestamp_header_name="X-Custom-Ts",
    )
    headers = signed_headers(config, "POST", "/api/surveys", '{"title":"Test"}', now=1700000000)
    assert headers == {"X-Custom-Sig": SCENARIO_SIGNATURE, "X-Custom-Ts": "1700000000"}


def test_key_is_not_revealed_by_repr(config):
    assert "dev-secret" not in repr(config)
    assert "dev-secret" not in str(config.key)


def test_httpx_auth_signs_path_query_and_body(config, mocker):
    mocker.patch("apisign.signing.signer.time.time", return_value=1700000000)
    request = httpx.Request(
        "POST", "http://api.local/api/surveys?draft=1", content=b'{"title":"Test"}'
    )

    signed = next(SignatureAuth(config).auth_flow(request))

    expected = compute_signature(
        config.key, "POST", "/api/surveys?draft=1", 1700000000, b'{"title":"Test"}'
    )
    assert signed.headers["X-API-Timestamp"] == "1700000000"
    assert signed.headers["X-API-Signature"] == expected
