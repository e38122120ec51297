"""
Per-resource advisory locks for the pessimistic booking strategy.

Keys are always acquired in sorted order so a submission that needs a
driver and a vehicle cannot deadlock against one that needs the same
pair. Acquisition is bounded by a timeout; on timeout every lock taken
so far is released and LockTimeoutException is raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
import uuid

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import Settings
from .enums import ResourceType
from .exceptions import LockTimeoutException

logger = logging.getLogger(__name__)

# Compare-and-delete so a lock that expired and was re-acquired elsewhere is left alone.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def resource_lock_key(resource_type: ResourceType, resource_id: str) -> str:
    return f"resource:{ResourceType(resource_type).value}:{resource_id}:mutex"


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}:mutex"


class LockBackend(ABC):
    """Acquire/release a single named lock."""

    @abstractmethod
    def acquire(self, key: str, timeout_s: float) -> Optional[str]:
        """Return an ownership token, or None if the lock was not obtained in time."""

    @abstractmethod
    def release(self, key: str, token: str) -> None:
        """Release a lock previously acquired with ``token``."""


class LocalLockBackend(LockBackend):
    """In-process locks; correct for a single worker process."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def acquire(self, key: str, timeout_s: float) -> Optional[str]:
        lock = self._lock_for(key)
        if lock.acquire(timeout=max(timeout_s, 0.0)):
            return uuid.uuid4().hex
        return None

    def release(self, key: str, token: str) -> None:
        lock = self._lock_for(key)
        try:
            lock.release()
        except RuntimeError:
            logger.warning("resource_lock_release_unheld", extra={"lock_key": key})


class RedisLockBackend(LockBackend):
    """
    Redis SET NX PX locks shared across worker processes.

    If Redis cannot be reached the backend fails open: the caller proceeds
    without the advisory lock and the store's slot-claim constraint is the
    remaining guard against double booking.
    """

    FAIL_OPEN_TOKEN = "redis-unavailable"

    def __init__(
        self,
        redis_url: str,
        *,
        namespace: str,
        ttl_s: int,
        retry_interval_s: float,
        client: Optional[Redis] = None,
    ) -> None:
        self._redis_url = redis_url
        self._namespace = namespace
        self._ttl_ms = int(ttl_s * 1000)
        self._retry_interval_s = retry_interval_s
        self._client = client
        self._client_lock = threading.Lock()

    def _namespaced_key(self, key: str) -> str:
        return f"{self._namespace}:lock:{key}"

    def _get_client(self) -> Optional[Redis]:
        if self._client is not None:
            return self._client
        with self._client_lock:
            if self._client is not None:
                return self._client
            try:
                client = Redis.from_url(
                    self._redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                client.ping()
            except Exception as exc:
                logger.warning("resource_lock_redis_unavailable: %s", exc)
                return None
            self._client = client
            return self._client

    def acquire(self, key: str, timeout_s: float) -> Optional[str]:
        client = self._get_client()
        if client is None:
            prometheus_metrics.record_resource_lock("acquire", "redis_unavailable")
            return self.FAIL_OPEN_TOKEN

        token = uuid.uuid4().hex
        deadline = time.monotonic() + timeout_s
        namespaced = self._namespaced_key(key)
        while True:
            try:
                if client.set(namespaced, token, nx=True, px=self._ttl_ms):
                    return token
            except Exception as exc:
                prometheus_metrics.record_resource_lock("acquire", "error")
                logger.warning(
                    "resource_lock_redis_acquire_failed",
                    extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
                )
                return self.FAIL_OPEN_TOKEN
            if time.monotonic() >= deadline:
                return None
            time.sleep(min(self._retry_interval_s, max(deadline - time.monotonic(), 0.0)))

    def release(self, key: str, token: str) -> None:
        if token == self.FAIL_OPEN_TOKEN:
            return
        client = self._get_client()
        if client is None:
            return
        try:
            released = client.eval(_RELEASE_SCRIPT, 1, self._namespaced_key(key), token)
        except Exception as exc:
            prometheus_metrics.record_resource_lock("release", "error")
            logger.warning(
                "resource_lock_redis_release_failed",
                extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            return
        if not released:
            prometheus_metrics.record_resource_lock("release", "not_owner")


class ResourceLockManager:
    """Acquire several advisory locks atomically (all or none) in a fixed order."""

    def __init__(self, backend: LockBackend, *, timeout_s: float) -> None:
        self.backend = backend
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, config: Settings) -> "ResourceLockManager":
        backend: LockBackend
        if config.lock_backend == "redis":
            backend = RedisLockBackend(
                config.redis_url,
                namespace=config.lock_namespace,
                ttl_s=config.lock_ttl_seconds,
                retry_interval_s=config.lock_retry_interval_seconds,
            )
        else:
            backend = LocalLockBackend()
        return cls(backend, timeout_s=config.lock_timeout_seconds)

    @contextmanager
    def hold(self, keys: Iterable[str], timeout_s: Optional[float] = None) -> Iterator[List[str]]:
        ordered = sorted(set(keys))
        timeout = self.timeout_s if timeout_s is None else timeout_s
        deadline = time.monotonic() + timeout
        held: List[Tuple[str, str]] = []
        try:
            for key in ordered:
                token = self.backend.acquire(key, max(deadline - time.monotonic(), 0.0))
                if token is None:
                    prometheus_metrics.record_resource_lock("acquire", "timeout")
                    logger.info(
                        "resource_lock_timeout",
                        extra={"lock_key": key, "timeout_s": timeout},
                    )
                    raise LockTimeoutException(ordered, timeout)
                held.append((key, token))
                prometheus_metrics.record_resource_lock("acquire", "success")
            yield ordered
        finally:
            for key, token in reversed(held):
                self.backend.release(key, token)
                prometheus_metrics.record_resource_lock("release", "success")
