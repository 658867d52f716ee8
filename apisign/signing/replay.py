"""Timestamp freshness and single-use enforcement for signed requests.

Replay protection is only as wide as the store: ``InMemoryReplayStore`` protects
a single process. Deployments running more than one instance must inject a
shared store (``RedisReplayStore``) or a signature captured from one instance
can be replayed once against each of the others.
"""
import hashlib
import heapq
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

import redis

from apisign.signing.errors import ReplayStoreUnavailable, SignatureErrorCode
from apisign.signing.models import SignatureConfig, VerificationResult
from apisign.utils.logger import get_error_logger

logger = get_error_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class ReplayStore:
    """Atomic check-then-insert of a signature for ``ttl_ms`` milliseconds."""

    def consume(self, signature: str, now: int, ttl_ms: int) -> bool:
        """Record ``signature``; return False when it was already recorded and still live."""
        raise NotImplementedError


class InMemoryReplayStore(ReplayStore):
    """Per-process store. Expired entries are purged lazily on access."""

    def __init__(self, max_entries: int = 100_000):
        self.max_entries = max_entries
        self._expires: Dict[str, int] = {}
        self._heap: List[Tuple[int, str]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._expires)

    def _purge(self, now: int) -> None:
        while self._heap and self._heap[0][0] <= now:
            expires_at, signature = heapq.heappop(self._heap)
            if self._expires.get(signature) == expires_at:
                del self._expires[signature]

    def consume(self, signature: str, now: int, ttl_ms: int) -> bool:
        with self._lock:
            self._purge(now)
            if signature in self._expires:
                return False
            if len(self._expires) >= self.max_entries:
                raise ReplayStoreUnavailable("replay store is full")
            expires_at = now + ttl_ms
            self._expires[signature] = expires_at
            heapq.heappush(self._heap, (expires_at, signature))
            return True

    def clear(self) -> None:
        with self._lock:
            self._expires.clear()
            self._heap.clear()


class RedisReplayStore(ReplayStore):
    """Shared store for multi-instance deployments. Redis errors fail closed."""

    KEY_PREFIX = "api_signature:seen:"

    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> "RedisReplayStore":
        timeout = settings.redis_timeout_ms / 1000
        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        return cls(client)

    def _key(self, signature: str) -> str:
        return self.KEY_PREFIX + hashlib.sha256(signature.encode("utf-8")).hexdigest()

    def consume(self, signature: str, now: int, ttl_ms: int) -> bool:
        try:
            created = self.client.set(self._key(signature), now, nx=True, px=ttl_ms)
        except redis.RedisError as exc:
            raise ReplayStoreUnavailable(f"redis replay check failed: {type(exc).__name__}") from exc
        return bool(created)


class ReplayGuard:
    def __init__(
        self,
        store: Optional[ReplayStore] = None,
        clock: Callable[[], int] = now_ms,
    ):
        # store=None disables single-use enforcement; freshness is still checked
        self.store = store
        self.clock = clock

    @property
    def single_use(self) -> bool:
        return self.store is not None

    def check_freshness_and_consume(
        self,
        config: SignatureConfig,
        timestamp: int,
        signature: str,
        now: Optional[int] = None,
    ) -> VerificationResult:
        """``timestamp`` is in seconds, ``now`` in milliseconds."""
        now = self.clock() if now is None else now
        if abs(now - timestamp * 1000) > config.expiration_window_ms:
            return VerificationResult.rejected(SignatureErrorCode.EXPIRED)

        if self.store is None:
            return VerificationResult.accepted()

        # keep the record until the signature can no longer pass the freshness check
        ttl_ms = config.expiration_window_ms + max(0, timestamp * 1000 - now)
        try:
            first_use = self.store.consume(signature, now, ttl_ms)
        except ReplayStoreUnavailable as exc:
            logger.error("Replay store unavailable, rejecting request", extra={"reason": str(exc)})
            return VerificationResult.rejected(SignatureErrorCode.REPLAY_CHECK_UNAVAILABLE)

        if not first_use:
            return VerificationResult.rejected(SignatureErrorCode.REPLAYED)
        return VerificationResult.accepted()
