"""
Resilience Module: Circuit Breakers for cluster transports.

Every transport owns its own breaker so that an outage on one cluster never
makes another cluster fail fast. An open breaker does not retry anything; it
only shortens the time a dead backend keeps refresh cycles busy.
"""
from typing import Any, Callable, Iterable, Optional

import pybreaker

from cluster_catalog.common.logger import get_logger

logger = get_logger("resilience")


class ObservabilityListener(pybreaker.CircuitBreakerListener):
    """Listener to export circuit breaker state changes and failures to logs."""

    def state_change(self, cb, old_state, new_state):
        old_name = old_state.name if old_state else None
        logger.warning(
            f"Circuit Breaker '{cb.name}' changed state: {old_name} -> {new_state.name}"
        )

    def failure(self, cb, exc):
        logger.error(
            f"Circuit Breaker '{cb.name}' recorded failure: {type(exc).__name__}: {exc}"
        )


def create_breaker(
    name: str,
    fail_max: int = 5,
    reset_timeout: int = 30,
    exclude: Optional[Iterable[Callable[[Any], bool]]] = None,
) -> Optional[pybreaker.CircuitBreaker]:
    """Factory to create a configured Circuit Breaker.

    Returns None when ``fail_max`` is 0, meaning the caller runs unguarded.
    Exceptions matched by ``exclude`` pass through without counting as a
    failure, so one broken source cannot open the circuit for its cluster.
    """
    if fail_max <= 0:
        return None
    return pybreaker.CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=name,
        exclude=list(exclude or []),
        listeners=[ObservabilityListener()],
    )
