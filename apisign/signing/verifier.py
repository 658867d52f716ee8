import hmac
from typing import Optional

from apisign.signing.errors import SignatureErrorCode
from apisign.signing.models import SignatureConfig, SignedRequestContext, VerificationResult
from apisign.signing.policy import PolicyEffect, PolicyTable
from apisign.signing.replay import ReplayGuard
from apisign.signing.signer import compute_signature

# Seconds fit in 11 digits until the year 5138; anything longer is not a timestamp
MAX_TIMESTAMP_DIGITS = 20


def parse_timestamp(value: str) -> Optional[int]:
    """Wire timestamps are plain non-negative integers (seconds)."""
    value = value.strip()
    if len(value) > MAX_TIMESTAMP_DIGITS or not value.isascii() or not value.isdigit():
        return None
    return int(value)


def signatures_match(expected: str, supplied: str) -> bool:
    # compare_digest on str only accepts ASCII; compare bytes so any header value is safe
    return hmac.compare_digest(
        expected.encode("utf-8"), supplied.strip().lower().encode("utf-8", "surrogateescape")
    )


def verify(
    config: SignatureConfig,
    policy: PolicyTable,
    request: SignedRequestContext,
    guard: Optional[ReplayGuard] = None,
    now: Optional[int] = None,
) -> VerificationResult:
    """Run one request through policy, header, HMAC and freshness checks.

    Never raises for a bad request; the outcome is carried in the result.
    The policy is matched on the decoded route path, the HMAC on the raw wire path.
    ``now`` is milliseconds since the epoch and only used by the freshness check.
    """
    if policy.resolve(request.policy_path) is PolicyEffect.EXEMPT:
        return VerificationResult.accepted(exempt=True)

    if not request.has_headers:
        return VerificationResult.rejected(SignatureErrorCode.MISSING_HEADERS)

    # HMAC is always computed, even for a malformed timestamp, so every
    # rejection after the header check costs the same
    expected = compute_signature(config.key, request.method, request.path, request.timestamp, request.body)
    matched = signatures_match(expected, request.signature)
    timestamp = parse_timestamp(request.timestamp)
    if not matched or timestamp is None:
        return VerificationResult.rejected(SignatureErrorCode.INVALID_SIGNATURE)

    guard = guard or ReplayGuard()
    return guard.check_freshness_and_consume(config, timestamp, expected, now=now)
