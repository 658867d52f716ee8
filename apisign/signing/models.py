from dataclasses import dataclass, field
from typing import Optional, Union

from apisign.signing.errors import SignatureErrorCode


class SigningKey:
    """Opaque shared secret. repr() and str() never reveal the bytes."""

    __slots__ = ("_secret",)

    def __init__(self, secret: Union[str, bytes]):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = bytes(secret)

    def __bytes__(self) -> bytes:
        return self._secret

    def __bool__(self) -> bool:
        return bool(self._secret)

    def __eq__(self, other) -> bool:
        return isinstance(other, SigningKey) and other._secret == self._secret

    def __hash__(self) -> int:
        return hash(self._secret)

    def __repr__(self) -> str:
        return "SigningKey(***)"

    __str__ = __repr__


@dataclass(frozen=True)
class SignatureConfig:
    key: SigningKey
    header_name: str = "X-API-Signature"
    timestamp_header_name: str = "X-API-Timestamp"
    expiration_window_ms: int = 5 * 60 * 1000

    def __post_init__(self):
        if self.expiration_window_ms <= 0:
            raise ValueError("expiration_window_ms must be positive")


@dataclass(frozen=True)
class SignedRequest:
    """Caller-side result of signing: attach both values as headers."""

    timestamp: int
    signature: str


@dataclass(frozen=True)
class SignedRequestContext:
    """Everything the verifier needs from one inbound request."""

    method: str
    path: str
    timestamp: Optional[str]
    body: bytes = b""
    signature: Optional[str] = field(default=None, repr=False)
    # Percent-decoded path the router will dispatch on; policy is matched against it
    route_path: Optional[str] = None

    @property
    def policy_path(self) -> str:
        return self.route_path or self.path

    @property
    def has_headers(self) -> bool:
        return bool(self.signature) and bool(self.timestamp)


@dataclass(frozen=True)
class VerificationResult:
    error: Optional[SignatureErrorCode] = None
    exempt: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def accepted(cls, exempt: bool = False) -> "VerificationResult":
        return cls(error=None, exempt=exempt)

    @classmethod
    def rejected(cls, error: SignatureErrorCode) -> "VerificationResult":
        return cls(error=error)
