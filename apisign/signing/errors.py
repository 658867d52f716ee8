from enum import Enum


class SignatureErrorCode(str, Enum):
    """Machine-readable rejection codes returned to API callers."""

    MISSING_HEADERS = "MissingHeaders"
    INVALID_SIGNATURE = "InvalidSignature"
    EXPIRED = "Expired"
    REPLAYED = "Replayed"
    # replay store timed out / unreachable; the request is refused (fail closed)
    REPLAY_CHECK_UNAVAILABLE = "ReplayCheckUnavailable"

    @property
    def status_code(self) -> int:
        if self is SignatureErrorCode.REPLAY_CHECK_UNAVAILABLE:
            return 503
        return 401

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    SignatureErrorCode.MISSING_HEADERS: "Missing required API signature headers",
    SignatureErrorCode.INVALID_SIGNATURE: "Invalid API signature",
    SignatureErrorCode.EXPIRED: "API signature timestamp outside the allowed window",
    SignatureErrorCode.REPLAYED: "API signature has already been used",
    SignatureErrorCode.REPLAY_CHECK_UNAVAILABLE: "Replay protection unavailable, retry later",
}


class MisconfiguredKeyError(RuntimeError):
    """Startup-time failure: no usable signing key. The server must not accept traffic."""


class SigningError(ValueError):
    """Raised by the signer when it cannot produce a keyed signature."""


class ReplayStoreUnavailable(Exception):
    """Raised by replay store backends when the check-then-insert cannot complete."""
