"""Per-provider health tracking with exponential circuit-breaker cool-down."""

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

import structlog

logger = structlog.get_logger(source="provider_health")

DEFAULT_BASE_COOLDOWN = 30.0
DEFAULT_MAX_COOLDOWN = 600.0


@dataclass
class ProviderHealth:
    """Health of one provider. Times are clock seconds (monotonic by default)."""

    consecutive_failures: int = 0
    last_success_at: float | None = None
    last_failure_at: float | None = None
    circuit_open_until: float | None = None
    last_error: str | None = None

    def is_open(self, now: float) -> bool:
        return self.circuit_open_until is not None and now < self.circuit_open_until


class HealthTable:
    """Shared health table keyed by "<capability>:<provider>".

    Mutated only by the provider gateway. Critical sections are a handful of
    field updates, so concurrent readers never wait on network I/O.
    """

    def __init__(
        self,
        base_cooldown: float = DEFAULT_BASE_COOLDOWN,
        max_cooldown: float = DEFAULT_MAX_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_cooldown = base_cooldown
        self.max_cooldown = max_cooldown
        self.clock = clock
        self._entries: dict[str, ProviderHealth] = {}
        self._lock = threading.Lock()

    def cooldown_for(self, consecutive_failures: int) -> float:
        """Cool-down after the given number of consecutive failures."""
        if consecutive_failures <= 0:
            return 0.0
        return min(self.base_cooldown * 2 ** (consecutive_failures - 1), self.max_cooldown)

    def is_available(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            return entry is None or not entry.is_open(now)

    def record_success(self, key: str) -> None:
        now = self.clock()
        with self._lock:
            entry = self._entries.setdefault(key, ProviderHealth())
            entry.consecutive_failures = 0
            entry.circuit_open_until = None
            entry.last_success_at = now
            entry.last_error = None

    def record_failure(self, key: str, error: str) -> float:
        """Record a failure and open the circuit. Returns the cool-down applied."""
        now = self.clock()
        with self._lock:
            entry = self._entries.setdefault(key, ProviderHealth())
            entry.consecutive_failures += 1
            cooldown = self.cooldown_for(entry.consecutive_failures)
            entry.circuit_open_until = now + cooldown
            entry.last_failure_at = now
            entry.last_error = error[:500]
            failures = entry.consecutive_failures

        logger.warning(
            "provider.circuit_opened",
            provider=key,
            consecutive_failures=failures,
            cooldown_seconds=cooldown,
        )
        return cooldown

    def get(self, key: str) -> ProviderHealth:
        with self._lock:
            entry = self._entries.get(key)
            return replace(entry) if entry else ProviderHealth()

    def snapshot(self) -> dict[str, ProviderHealth]:
        """Copies of every entry, safe to read without the lock."""
        with self._lock:
            return {key: replace(entry) for key, entry in self._entries.items()}

    def reset_stale(self) -> list[str]:
        """Return providers to healthy once the circuit has expired and the last
        failure is older than the maximum cool-down."""
        now = self.clock()
        reset = []
        with self._lock:
            for key, entry in self._entries.items():
                if entry.circuit_open_until is None or entry.is_open(now):
                    continue
                if entry.last_failure_at is not None and now - entry.last_failure_at < self.max_cooldown:
                    continue
                entry.consecutive_failures = 0
                entry.circuit_open_until = None
                entry.last_error = None
                reset.append(key)

        if reset:
            logger.info("provider.health_reset", providers=reset)
        return reset
