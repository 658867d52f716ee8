"""Canonical request string shared by signer and verifier.

Layout::

    METHOD:PATH:TIMESTAMP            (no body)
    METHOD:PATH:TIMESTAMP:BODY       (non-empty body)

METHOD is used exactly as given; callers pass the uppercase HTTP verb.
PATH is the raw request path including ``?query`` when the request has one.
BODY is the exact wire payload and is always the last segment, so it needs no
escaping.
"""
from typing import Optional, Union

DELIMITER = ":"
# keeps arbitrary body bytes lossless through the str round-trip
_BODY_ERRORS = "surrogateescape"


def build_path(path: str, query: Optional[Union[str, bytes]] = None) -> str:
    """Fold a raw query string into the signed path."""
    if isinstance(query, bytes):
        query = query.decode("latin-1")
    if query:
        return f"{path}?{query}"
    return path


def canonicalize(
    method: str,
    path: str,
    timestamp: Union[int, str],
    body: Optional[Union[str, bytes]] = None,
) -> str:
    segments = [method, path, str(timestamp)]
    if body:
        if isinstance(body, bytes):
            body = body.decode("utf-8", _BODY_ERRORS)
        segments.append(body)
    return DELIMITER.join(segments)


def canonical_bytes(
    method: str,
    path: str,
    timestamp: Union[int, str],
    body: Optional[Union[str, bytes]] = None,
) -> bytes:
    return canonicalize(method, path, timestamp, body).encode("utf-8", _BODY_ERRORS)
