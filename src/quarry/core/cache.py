# src/quarry/core/cache.py
"""
Computation cache for expensive derived artifacts.

Guarantees:
- Single-flight: for a given key, compute_fn runs at most once until the entry
  is evicted or invalidated. Every caller (the first one included) awaits the
  same Future, so all of them receive the identical artifact or the identical
  exception instance.
- Bounded: entries are kept in LRU order and evicted once the total size
  estimate exceeds the configured budget.
- Generational: advance_to(v) makes every key tagged with a dataset version
  below v invisible. Stale entries are not swept eagerly; they are never
  matched again and are the first to go when eviction runs.

Failures are never cached. A caller that stops waiting (timeout, cancelled
task) does not cancel the shared computation, which runs to completion on
the cache's worker pool and is stored for the next caller.
"""

from __future__ import annotations

import asyncio
import sys
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import numpy as np

from quarry.contracts.enums import OperationKind
from quarry.contracts.errors import ComputationError, QuarryError
from quarry.core.canonical import stable_hash
from quarry.core.logging import get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from quarry.core.config import CacheSettings

logger = get_logger(__name__)

# Sentinel distinguishing "use the configured timeout" from an explicit None
_DEFAULT_TIMEOUT: Any = object()


@dataclass(frozen=True)
class CacheKey:
    """Identity of a derived artifact: (dataset version, operation, signature)."""

    dataset_version: int
    operation: OperationKind
    signature: str

    @classmethod
    def build(
        cls,
        dataset_version: int,
        operation: OperationKind,
        payload: Any,
    ) -> CacheKey:
        """Create a key whose signature is the stable hash of payload."""
        return cls(
            dataset_version=dataset_version,
            operation=operation,
            signature=stable_hash(payload),
        )

    @property
    def token(self) -> str:
        """Opaque string form, e.g. 'train:3:ab12...'."""
        return f"{self.operation.value}:{self.dataset_version}:{self.signature}"

    @classmethod
    def parse(cls, token: str) -> CacheKey:
        """Inverse of token.

        Raises:
            ValueError: If token is not a rendered CacheKey
        """
        parts = token.split(":")
        if len(parts) != 3 or not parts[1].isdigit() or not parts[2]:
            raise ValueError(f"Malformed cache key token: {token!r}")
        return cls(
            dataset_version=int(parts[1]),
            operation=OperationKind(parts[0]),
            signature=parts[2],
        )


@dataclass
class CacheEntry:
    """A stored artifact. The value is shared read-only by every caller."""

    key: CacheKey
    value: Any
    computed_at: datetime
    size_hint: int
    hits: int = 0


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int
    misses: int
    computations: int
    failures: int
    evictions: int
    entries: int
    size_bytes: int
    in_flight: int
    generation: int


def estimate_size(value: Any) -> int:
    """Size estimate for the LRU budget.

    Artifacts expose size_hint; numpy arrays report nbytes; anything else
    falls back to sys.getsizeof.
    """
    hint = getattr(value, "size_hint", None)
    if isinstance(hint, int):
        return max(hint, 1)
    if isinstance(value, np.ndarray):
        return max(int(value.nbytes), 1)
    return max(sys.getsizeof(value), 1)


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0
    computations: int = 0
    failures: int = 0
    evictions: int = 0


class ComputationCache:
    """Single-flight, size-bounded, generational memo cache.

    Example:
        cache = ComputationCache(max_size_bytes=64 * 1024 * 1024)
        key = CacheKey.build(snapshot.version, OperationKind.CORRELATE, columns)
        matrix = cache.get_or_compute(key, lambda: stats.correlate(columns))

        # New dataset published: older keys are never served again
        cache.advance_to(snapshot.version + 1)

        with ComputationCache(max_size_bytes=1024) as cache:
            cache.get_or_compute(key, compute)
    """

    def __init__(
        self,
        max_size_bytes: int,
        compute_workers: int = 4,
        wait_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            max_size_bytes: Size budget above which entries are evicted
            compute_workers: Threads running shared computations
            wait_timeout_seconds: Default caller wait limit (None = forever)
        """
        if max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")
        self._max_size = max_size_bytes
        self._wait_timeout = wait_timeout_seconds
        self._lock = threading.Lock()
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._in_flight: dict[CacheKey, Future[Any]] = {}
        self._size = 0
        self._generation = 0
        self._counters = _Counters()
        self._executor = ThreadPoolExecutor(
            max_workers=compute_workers,
            thread_name_prefix="quarry-compute",
        )

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> ComputationCache:
        """Create a cache from validated settings."""
        return cls(
            max_size_bytes=settings.max_size_bytes,
            compute_workers=settings.compute_workers,
            wait_timeout_seconds=settings.wait_timeout_seconds,
        )

    @property
    def generation(self) -> int:
        """Lowest dataset version still served."""
        return self._generation

    @property
    def max_size_bytes(self) -> int:
        return self._max_size

    # === Public API ===

    def get_or_compute(
        self,
        key: CacheKey,
        compute_fn: Callable[[], Any],
        *,
        timeout: float | None = _DEFAULT_TIMEOUT,
    ) -> Any:
        """Return the cached artifact for key, computing it at most once.

        Args:
            key: Artifact identity
            compute_fn: Zero-argument callable producing the artifact
            timeout: Seconds to wait for a shared computation; defaults to
                the configured wait timeout

        Returns:
            The artifact (the same object for every caller of this key)

        Raises:
            QuarryError: Caller errors raised by compute_fn, unchanged
            ComputationError: Any other failure inside compute_fn
            TimeoutError: If this caller stopped waiting; the computation
                itself keeps running
        """
        if timeout is _DEFAULT_TIMEOUT:
            timeout = self._wait_timeout
        future = self._resolve(key, compute_fn)
        return future.result(timeout=timeout)

    async def aget_or_compute(
        self,
        key: CacheKey,
        compute_fn: Callable[[], Any],
    ) -> Any:
        """Awaitable get_or_compute for asyncio callers.

        Cancelling the awaiting task abandons the request only; the shared
        Future is shielded so other awaiters still receive the result.
        """
        future = self._resolve(key, compute_fn)
        return await asyncio.shield(asyncio.wrap_future(future))

    def peek(self, key: CacheKey) -> Any:
        """Return a live artifact without ever computing it.

        Raises:
            KeyError: If key is absent, evicted, or from a stale generation
        """
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                raise KeyError(f"Cache entry not found: {key.token}")
            self._counters.hits += 1
            return entry.value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, CacheKey):
            return False
        with self._lock:
            return key.dataset_version >= self._generation and key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def advance_to(self, dataset_version: int) -> None:
        """Invalidate every generation older than dataset_version.

        Lazy: entries stay in memory until eviction reclaims them, but they
        are never matched again.
        """
        with self._lock:
            if dataset_version <= self._generation:
                return
            previous = self._generation
            self._generation = dataset_version
        logger.info(
            "cache_generation_advanced",
            previous=previous,
            generation=dataset_version,
        )

    def clear(self) -> None:
        """Drop all stored entries. In-flight computations are unaffected."""
        with self._lock:
            self._entries.clear()
            self._size = 0

    def stats(self) -> CacheStats:
        """Snapshot of counters for diagnostics."""
        with self._lock:
            return CacheStats(
                hits=self._counters.hits,
                misses=self._counters.misses,
                computations=self._counters.computations,
                failures=self._counters.failures,
                evictions=self._counters.evictions,
                entries=len(self._entries),
                size_bytes=self._size,
                in_flight=len(self._in_flight),
                generation=self._generation,
            )

    def close(self, wait: bool = True) -> None:
        """Shut down the worker pool.

        Args:
            wait: If True, wait for in-flight computations to finish
        """
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> ComputationCache:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # === Internals ===

    def _live_entry(self, key: CacheKey) -> CacheEntry | None:
        """Entry for key if it belongs to a live generation. Lock held."""
        if key.dataset_version < self._generation:
            return None
        entry = self._entries.get(key)
        if entry is not None:
            entry.hits += 1
            self._entries.move_to_end(key)
        return entry

    def _resolve(self, key: CacheKey, compute_fn: Callable[[], Any]) -> Future[Any]:
        """Find a stored entry, join an in-flight Future, or start one."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                self._counters.hits += 1
                done: Future[Any] = Future()
                done.set_result(entry.value)
                logger.debug("cache_hit", key=key.token)
                return done

            in_flight = self._in_flight.get(key)
            if in_flight is not None:
                self._counters.hits += 1
                logger.debug("cache_join_in_flight", key=key.token)
                return in_flight

            self._counters.misses += 1
            # Registered under the lock, so _run cannot finish before this
            # future is visible to other callers.
            future = self._executor.submit(self._run, key, compute_fn)
            self._in_flight[key] = future
            logger.debug("cache_miss", key=key.token)
            return future

    def _run(self, key: CacheKey, compute_fn: Callable[[], Any]) -> Any:
        """Worker-side execution: compute, then store or discard."""
        started = time.perf_counter()
        try:
            value = compute_fn()
        except QuarryError as e:
            self._finish_failed(key, e)
            raise
        except Exception as e:
            self._finish_failed(key, e)
            raise ComputationError(
                f"{key.operation.value} computation failed: {e}"
            ) from e
        except BaseException as e:
            # SystemExit and friends still release the key, unwrapped
            self._finish_failed(key, e)
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        size = estimate_size(value)
        with self._lock:
            self._in_flight.pop(key, None)
            self._counters.computations += 1
            if key.dataset_version < self._generation:
                logger.info("cache_discarded_stale", key=key.token)
            elif size > self._max_size:
                logger.warning(
                    "cache_artifact_over_budget",
                    key=key.token,
                    size_bytes=size,
                    max_size_bytes=self._max_size,
                )
            else:
                self._store(key, value, size)
        logger.debug(
            "cache_computed",
            key=key.token,
            duration_ms=round(duration_ms, 3),
            size_bytes=size,
        )
        return value

    def _finish_failed(self, key: CacheKey, error: BaseException) -> None:
        with self._lock:
            self._in_flight.pop(key, None)
            self._counters.failures += 1
        logger.warning(
            "computation_failed",
            key=key.token,
            error_type=type(error).__name__,
            error=str(error),
        )

    def _store(self, key: CacheKey, value: Any, size: int) -> None:
        """Insert as most recently used, then enforce the budget. Lock held."""
        previous = self._entries.pop(key, None)
        if previous is not None:
            self._size -= previous.size_hint
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            computed_at=datetime.now(UTC),
            size_hint=size,
        )
        self._size += size
        self._evict()

    def _evict(self) -> None:
        """Reclaim stale generations first, then least recently used. Lock held."""
        if self._size <= self._max_size:
            return

        stale = [k for k in self._entries if k.dataset_version < self._generation]
        for key in stale:
            self._drop(key, reason="stale")
            if self._size <= self._max_size:
                return

        while self._size > self._max_size and self._entries:
            oldest = next(iter(self._entries))
            self._drop(oldest, reason="lru")

    def _drop(self, key: CacheKey, reason: str) -> None:
        entry = self._entries.pop(key)
        self._size -= entry.size_hint
        self._counters.evictions += 1
        logger.debug("cache_evicted", key=key.token, reason=reason)
