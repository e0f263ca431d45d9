"""
Tests for the competency lookup circuit breaker and cache fallback.
"""
import uuid
from unittest.mock import MagicMock

import pytest

from assessment.core.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpenError,
    CircuitState,
    ResilientCompetencyLoader,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    config = CircuitBreakerConfig(
        failure_rate_threshold=50.0, window_size=4, minimum_calls=2, open_seconds=30.0
    )
    return CircuitBreaker("test-lookup", config, clock=clock)


def fail():
    raise ConnectionError("database unavailable")


def trip(breaker):
    for _ in range(breaker.config.minimum_calls):
        with pytest.raises(ConnectionError):
            breaker.call(fail)


class TestCircuitBreakerConfig:
    """Validation of breaker configuration."""

    @pytest.mark.parametrize("rate", [0.0, 100.5])
    def test_failure_rate_bounds(self, rate):
        with pytest.raises(ValueError, match="failure_rate_threshold"):
            CircuitBreakerConfig(failure_rate_threshold=rate)

    def test_window_size(self):
        with pytest.raises(ValueError, match="window_size must be at least 1"):
            CircuitBreakerConfig(window_size=0, minimum_calls=1)

    def test_minimum_calls_within_window(self):
        with pytest.raises(ValueError, match="minimum_calls"):
            CircuitBreakerConfig(window_size=3, minimum_calls=4)

    def test_open_seconds(self):
        with pytest.raises(ValueError, match="open_seconds"):
            CircuitBreakerConfig(open_seconds=-1)

    def test_from_settings(self):
        config = CircuitBreakerConfig.from_settings()
        assert config.window_size == 10
        assert config.minimum_calls == 5


class TestCircuitBreaker:
    """State transitions of CircuitBreaker."""

    def test_starts_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_rate() == 0.0

    def test_success_passes_through(self, breaker):
        assert breaker.call(lambda x: x * 2, 21) == 42

    def test_needs_minimum_calls_before_opening(self, breaker):
        """A single failure is not enough evidence to open."""
        with pytest.raises(ConnectionError):
            breaker.call(fail)
        assert breaker.state == CircuitState.CLOSED

    def test_opens_at_failure_rate(self, breaker):
        trip(breaker)
        assert breaker.state == CircuitState.OPEN

    def test_open_rejects_without_calling(self, breaker):
        trip(breaker)
        func = MagicMock()

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            breaker.call(func)

        func.assert_not_called()
        assert exc_info.value.time_until_retry == pytest.approx(30.0)

    def test_half_open_after_open_period(self, breaker, clock):
        trip(breaker)
        clock.advance(30.0)
        assert breaker.state == CircuitState.HALF_OPEN

    def test_probe_success_closes(self, breaker, clock):
        trip(breaker)
        clock.advance(31.0)

        breaker.call(lambda: "ok")

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_rate() == 0.0

    def test_probe_failure_reopens(self, breaker, clock):
        trip(breaker)
        clock.advance(31.0)

        with pytest.raises(ConnectionError):
            breaker.call(fail)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            breaker.call(lambda: "ok")

    def test_failure_rate_below_threshold_stays_closed(self, breaker):
        """One failure in four calls is 25%, under the 50% threshold."""
        for _ in range(3):
            breaker.call(lambda: None)
        with pytest.raises(ConnectionError):
            breaker.call(fail)

        assert breaker.failure_rate() == pytest.approx(25.0)
        assert breaker.state == CircuitState.CLOSED

    def test_reset(self, breaker):
        trip(breaker)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED


class TestResilientCompetencyLoader:
    """Cache fallback around a competency lookup."""

    @pytest.fixture
    def lookup(self):
        return MagicMock()

    @pytest.fixture
    def loader(self, lookup, breaker):
        return ResilientCompetencyLoader(lookup, breaker)

    def test_successful_batch_is_cached(self, loader, lookup, make_competency):
        competency = make_competency()
        lookup.get_competencies.return_value = {competency.id: competency}

        assert loader.get_competencies([competency.id]) == {competency.id: competency}
        assert loader.is_cached(competency.id)
        assert loader.cache_size() == 1

    def test_empty_ids_skip_lookup(self, loader, lookup):
        assert loader.get_competencies([]) == {}
        lookup.get_competencies.assert_not_called()

    def test_failure_served_from_cache(self, loader, lookup, make_competency, caplog):
        """After a successful load, an outage is answered from cache."""
        competency = make_competency()
        lookup.get_competencies.return_value = {competency.id: competency}
        loader.warm_cache([competency.id])
        lookup.get_competencies.side_effect = ConnectionError("down")

        with caplog.at_level("WARNING"):
            result = loader.get_competencies([competency.id])

        assert result == {competency.id: competency}
        assert "served all 1 from cache" in caplog.text

    def test_failure_with_empty_cache_returns_partial(self, loader, lookup, caplog):
        """Uncached competencies are simply missing; nothing is raised."""
        lookup.get_competencies.side_effect = ConnectionError("down")

        with caplog.at_level("ERROR"):
            result = loader.get_competencies([uuid.uuid4()])

        assert result == {}
        assert "1 unavailable" in caplog.text

    def test_single_lookup_fallback(self, loader, lookup, make_competency):
        competency = make_competency()
        lookup.get_competency.return_value = competency
        assert loader.get_competency(competency.id) is competency

        lookup.get_competency.side_effect = TimeoutError("slow")
        assert loader.get_competency(competency.id) is competency
        assert loader.get_competency(uuid.uuid4()) is None

    def test_open_circuit_skips_lookup(self, loader, lookup, breaker, make_competency):
        """Once the breaker opens the backing lookup is not called."""
        competency = make_competency()
        lookup.get_competencies.return_value = {competency.id: competency}
        loader.warm_cache([competency.id])
        lookup.get_competencies.side_effect = ConnectionError("down")
        loader.get_competencies([competency.id])
        loader.get_competencies([competency.id])
        assert breaker.state == CircuitState.OPEN
        calls = lookup.get_competencies.call_count

        assert loader.get_competencies([competency.id]) == {competency.id: competency}
        assert lookup.get_competencies.call_count == calls

    def test_clear_cache(self, loader, lookup, make_competency):
        competency = make_competency()
        lookup.get_competencies.return_value = {competency.id: competency}
        assert loader.warm_cache([competency.id]) == 1

        loader.clear_cache()

        assert loader.cache_size() == 0
