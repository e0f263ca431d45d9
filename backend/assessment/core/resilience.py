"""Circuit breaker and cache fallback for competency lookups.

Scoring resolves competency names through a lookup that may be slow or
unavailable. ``ResilientCompetencyLoader`` wraps any ``CompetencyLookup``:

- successful reads populate a thread-safe local cache
- calls go through a ``CircuitBreaker``; while it is open the backing
  lookup is not called at all
- any failure (lookup error or open circuit) is answered from the cache,
  which may be partial or empty, so scoring never fails on a lookup outage

States:
    CLOSED: Normal operation, calls pass through
    OPEN: Lookup is failing, calls are rejected immediately
    HALF_OPEN: One probe call decides between CLOSED and OPEN

Transitions:
    CLOSED -> OPEN: Failure rate over the rolling window reaches the
        threshold (after at least ``minimum_calls`` calls)
    OPEN -> HALF_OPEN: ``open_seconds`` elapsed since opening
    HALF_OPEN -> CLOSED: Probe succeeds
    HALF_OPEN -> OPEN: Probe fails
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, Optional, TypeVar
from uuid import UUID

from assessment.core.config import settings
from assessment.core.lookups import CompetencyLookup

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""

    failure_rate_threshold: float = 50.0
    """Failure percentage (0-100] over the window that opens the circuit."""

    window_size: int = 10
    """Number of recent calls considered for the failure rate."""

    minimum_calls: int = 5
    """Calls required in the window before the failure rate is evaluated."""

    open_seconds: float = 30.0
    """Seconds to stay OPEN before allowing a HALF_OPEN probe."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not 0.0 < self.failure_rate_threshold <= 100.0:
            raise ValueError("failure_rate_threshold must be in (0, 100]")
        if self.window_size < 1:
            raise ValueError("window_size must be at least 1")
        if not 1 <= self.minimum_calls <= self.window_size:
            raise ValueError("minimum_calls must be between 1 and window_size")
        if self.open_seconds < 0:
            raise ValueError("open_seconds must be non-negative")

    @classmethod
    def from_settings(cls) -> "CircuitBreakerConfig":
        """Create config from application settings."""
        return cls(
            failure_rate_threshold=settings.COMPETENCY_LOOKUP_FAILURE_RATE_THRESHOLD,
            window_size=settings.COMPETENCY_LOOKUP_WINDOW_SIZE,
            minimum_calls=settings.COMPETENCY_LOOKUP_MIN_CALLS,
            open_seconds=settings.COMPETENCY_LOOKUP_OPEN_SECONDS,
        )


class CircuitBreakerOpenError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, time_until_retry: float):
        self.name = name
        self.time_until_retry = time_until_retry
        super().__init__(
            f"Circuit breaker is OPEN for '{name}'. Retry in {time_until_retry:.1f}s"
        )


class CircuitBreaker:
    """Failure-rate circuit breaker with an injectable clock.

    Thread-safe; state is guarded by a lock, the protected call itself runs
    outside it.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig.from_settings()
        self._clock = clock
        self._lock = threading.RLock()
        self._state = CircuitState.CLOSED
        self._recent_calls: Deque[bool] = deque(maxlen=self.config.window_size)
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._check_state_transition()
            return self._state

    def failure_rate(self) -> float:
        """Failure percentage over the current window (0.0 when empty)."""
        with self._lock:
            if not self._recent_calls:
                return 0.0
            failures = sum(1 for ok in self._recent_calls if not ok)
            return failures / len(self._recent_calls) * 100.0

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` under breaker protection.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Whatever ``func`` raises (recorded as a failure)
        """
        with self._lock:
            self._check_state_transition()
            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpenError(self.name, self._time_until_retry())

        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def record_success(self) -> None:
        with self._lock:
            self._recent_calls.append(True)
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED, "Probe call succeeded")

    def record_failure(self) -> None:
        with self._lock:
            self._recent_calls.append(False)
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN, "Probe call failed")
            elif self._state == CircuitState.CLOSED and self._should_open_circuit():
                self._transition_to(
                    CircuitState.OPEN,
                    f"Failure rate {self.failure_rate():.1f}% reached "
                    f"{self.config.failure_rate_threshold:.1f}%",
                )

    def reset(self) -> None:
        with self._lock:
            self._transition_to(CircuitState.CLOSED, "Manual reset")
            self._recent_calls.clear()

    def _should_open_circuit(self) -> bool:
        if len(self._recent_calls) < self.config.minimum_calls:
            return False
        return self.failure_rate() >= self.config.failure_rate_threshold

    def _check_state_transition(self) -> None:
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return
        if self._clock() - self._opened_at >= self.config.open_seconds:
            self._transition_to(
                CircuitState.HALF_OPEN,
                f"Open period ({self.config.open_seconds}s) elapsed",
            )

    def _time_until_retry(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.config.open_seconds - (self._clock() - self._opened_at))

    def _transition_to(self, new_state: CircuitState, reason: str) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(f"Circuit breaker [{self.name}]: {old_state.value} -> {new_state.value} ({reason})")
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.CLOSED:
            self._opened_at = None
            self._recent_calls.clear()


class ResilientCompetencyLoader:
    """``CompetencyLookup`` wrapper that degrades to cached competencies.

    Never raises to its callers: on failure ``get_competency`` returns the
    cached entry or None, and ``get_competencies`` returns whatever subset is
    cached.

    Example:
        >>> loader = ResilientCompetencyLoader(SqlQuestionBank(db))
        >>> loader.get_competencies({competency_id})
        {UUID(...): <Competency ...>}
    """

    def __init__(
        self,
        lookup: CompetencyLookup,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self._lookup = lookup
        self._breaker = breaker or CircuitBreaker("competency-lookup")
        self._cache: Dict[UUID, Any] = {}
        self._cache_lock = threading.Lock()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def get_competency(self, competency_id: UUID) -> Optional[Any]:
        try:
            competency = self._breaker.call(self._lookup.get_competency, competency_id)
        except Exception as e:
            return self._cached_single(competency_id, e)

        if competency is not None:
            with self._cache_lock:
                self._cache[competency_id] = competency
        return competency

    def get_competencies(self, competency_ids: Iterable[UUID]) -> Dict[UUID, Any]:
        ids = set(competency_ids)
        if not ids:
            return {}
        try:
            loaded = self._breaker.call(self._lookup.get_competencies, ids)
        except Exception as e:
            return self._cached_batch(ids, e)

        with self._cache_lock:
            self._cache.update(loaded)
        return dict(loaded)

    def warm_cache(self, competency_ids: Iterable[UUID]) -> int:
        """Preload competencies; returns the number cached by this call."""
        loaded = self.get_competencies(competency_ids)
        logger.debug(f"Warmed competency cache with {len(loaded)} entries")
        return len(loaded)

    def cache_size(self) -> int:
        with self._cache_lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def is_cached(self, competency_id: UUID) -> bool:
        with self._cache_lock:
            return competency_id in self._cache

    def _cached_single(self, competency_id: UUID, error: Exception) -> Optional[Any]:
        with self._cache_lock:
            cached = self._cache.get(competency_id)
        if cached is None:
            logger.error(
                f"Competency lookup failed for {competency_id} and no cached copy "
                f"exists: {type(error).__name__}: {error}"
            )
        else:
            logger.warning(
                f"Competency lookup failed ({type(error).__name__}), "
                f"serving cached competency {competency_id}"
            )
        return cached

    def _cached_batch(self, ids: set[UUID], error: Exception) -> Dict[UUID, Any]:
        with self._cache_lock:
            cached = {cid: self._cache[cid] for cid in ids if cid in self._cache}
        missing = len(ids) - len(cached)
        if missing:
            logger.error(
                f"Competency batch lookup failed ({type(error).__name__}: {error}); "
                f"serving {len(cached)} cached, {missing} unavailable"
            )
        else:
            logger.warning(
                f"Competency batch lookup failed ({type(error).__name__}), "
                f"served all {len(cached)} from cache"
            )
        return cached
