import hashlib
import hmac
import time
from typing import Dict, Optional, Union

import httpx

from apisign.signing.canonical import build_path, canonical_bytes
from apisign.signing.errors import SigningError
from apisign.signing.models import SignatureConfig, SignedRequest, SigningKey


Body = Optional[Union[str, bytes]]


def compute_signature(
    key: SigningKey,
    method: str,
    path: str,
    timestamp: Union[int, str],
    body: Body = None,
) -> str:
    """Lowercase hex HMAC-SHA256 of the canonical request string."""
    if not key:
        raise SigningError("Signing key is empty; refusing to produce an unkeyed signature")
    message = canonical_bytes(method, path, timestamp, body)
    return hmac.new(bytes(key), message, hashlib.sha256).hexdigest()


def sign(
    config: SignatureConfig,
    method: str,
    path: str,
    body: Body = None,
    now: Optional[float] = None,
) -> SignedRequest:
    """Sign a request for sending. ``now`` is seconds since the epoch (defaults to the clock)."""
    timestamp = int(time.time() if now is None else now)
    signature = compute_signature(config.key, method, path, timestamp, body)
    return SignedRequest(timestamp=timestamp, signature=signature)


def signed_headers(
    config: SignatureConfig,
    method: str,
    path: str,
    body: Body = None,
    now: Optional[float] = None,
) -> Dict[str, str]:
    """Headers to attach to an outgoing request."""
    signed = sign(config, method, path, body, now=now)
    return {
        config.header_name: signed.signature,
        config.timestamp_header_name: str(signed.timestamp),
    }


class SignatureAuth(httpx.Auth):
    """httpx auth flow that signs every outgoing request.

        client = httpx.Client(base_url=..., auth=SignatureAuth(config))
    """

    requires_request_body = True

    def __init__(self, config: SignatureConfig):
        self.config = config

    def auth_flow(self, request: httpx.Request):
        path = build_path(request.url.raw_path.split(b"?", 1)[0].decode("ascii"), request.url.query)
        request.headers.update(
            signed_headers(self.config, request.method, path, request.content)
        )
        yield request
