"""Timeout-bounded client for the remote authority snapshot store."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from dataclasses import dataclass, field
from typing import Any, Protocol

from vitrine.codec import SnapshotCodec
from vitrine.errors import SnapshotDecodeError
from vitrine.models import CatalogSnapshot


@dataclass(frozen=True)
class FetchResult:
    snapshot: CatalogSnapshot | None
    reason: str
    detail: dict[str, Any] = field(default_factory=dict)
    data: bytes | None = None

    @property
    def degraded(self) -> bool:
        """True when the remote could not be read, as opposed to holding nothing."""
        return self.reason not in {"fetched", "absent"}


@dataclass(frozen=True)
class PushResult:
    ok: bool
    reason: str
    detail: dict[str, Any] = field(default_factory=dict)


class AuthorityStore(Protocol):
    def fetch_snapshot(self) -> bytes | None:
        ...

    def put_snapshot(self, data: bytes) -> None:
        ...


class CircuitBreaker:
    def __init__(self, failure_threshold: int = 3, reset_timeout_seconds: float = 10.0) -> None:
        self.failure_threshold = max(1, failure_threshold)
        self.reset_timeout_seconds = max(0.01, reset_timeout_seconds)
        self._failure_count = 0
        self._opened_at_monotonic = 0.0
        self._state = "closed"
        self._lock = threading.Lock()

    def state(self) -> str:
        with self._lock:
            return self._state

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {"state": self._state, "failure_count": self._failure_count}

    def allow_request(self) -> bool:
        with self._lock:
            if self._state != "open":
                return True
            elapsed = time.monotonic() - self._opened_at_monotonic
            if elapsed >= self.reset_timeout_seconds:
                self._state = "half_open"
                return True
            return False

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            self._state = "closed"
            self._opened_at_monotonic = 0.0

    def record_failure(self) -> None:
        with self._lock:
            if self._state == "half_open":
                self._failure_count = self.failure_threshold
            else:
                self._failure_count += 1
            if self._failure_count >= self.failure_threshold:
                self._state = "open"
                self._opened_at_monotonic = time.monotonic()


class AuthorityClient:
    def __init__(
        self,
        store: AuthorityStore,
        codec: SnapshotCodec | None = None,
        timeout_seconds: float = 5.0,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self.store = store
        self.codec = codec or SnapshotCodec()
        self.timeout_seconds = max(0.01, timeout_seconds)
        self.circuit_breaker = circuit_breaker or CircuitBreaker()
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="vitrine-authority")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def fetch(self) -> FetchResult:
        if not self.circuit_breaker.allow_request():
            return FetchResult(snapshot=None, reason="circuit_open")

        future = self._executor.submit(self.store.fetch_snapshot)
        try:
            data = future.result(timeout=self.timeout_seconds)
        except TimeoutError:
            self.circuit_breaker.record_failure()
            future.cancel()
            return FetchResult(snapshot=None, reason="fetch_timeout")
        except Exception as exc:
            self.circuit_breaker.record_failure()
            return FetchResult(snapshot=None, reason="fetch_error", detail={"error": str(exc)})

        if data is None:
            self.circuit_breaker.record_success()
            return FetchResult(snapshot=None, reason="absent")

        try:
            snapshot = self.codec.decode(data, verify_signature=True)
        except SnapshotDecodeError as exc:
            self.circuit_breaker.record_failure()
            return FetchResult(snapshot=None, reason=exc.reason, detail={"error": exc.detail})

        self.circuit_breaker.record_success()
        return FetchResult(snapshot=snapshot, reason="fetched", detail={"bytes": len(data)}, data=data)

    def put(self, snapshot: CatalogSnapshot) -> PushResult:
        if not self.circuit_breaker.allow_request():
            return PushResult(ok=False, reason="circuit_open")

        data = self.codec.encode(snapshot)
        future = self._executor.submit(self.store.put_snapshot, data)
        try:
            future.result(timeout=self.timeout_seconds)
        except TimeoutError:
            self.circuit_breaker.record_failure()
            future.cancel()
            return PushResult(ok=False, reason="put_timeout")
        except Exception as exc:
            self.circuit_breaker.record_failure()
            return PushResult(ok=False, reason="put_error", detail={"error": str(exc)})

        self.circuit_breaker.record_success()
        return PushResult(ok=True, reason="pushed", detail={"bytes": len(data), "records": len(snapshot)})
