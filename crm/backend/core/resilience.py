"""
Resilience for Outbound Calls.

Circuit breakers (aiobreaker) for the third-party APIs the integrations
talk to. Calls are never retried: a failing service is short-circuited
until its reset delay has passed. Breakers are kept per service name, so an
OVH outage does not short-circuit Microsoft Graph.

Every state change and failure is logged with a ``resilience_event`` field:

    jq 'select(.resilience_event != null)' logs/system.jsonl

Usage:
    from crm.backend.core.resilience import get_circuit_breaker

    breaker = get_circuit_breaker("gocardless")
    response = await breaker.call_async(send, "GET", "/accounts/")
"""

from datetime import timedelta
from typing import Any

import aiobreaker

from crm.backend.core.logging import get_logger

logger = get_logger(__name__)

_breakers: dict[str, aiobreaker.CircuitBreaker] = {}


class ResilienceLogger(aiobreaker.CircuitBreakerListener):
    """Logs the state changes and recorded failures of one breaker."""

    def __init__(self, dependency: str) -> None:
        self.dependency = dependency

    def state_change(self, cb: aiobreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        state = getattr(new_state, "state", new_state)
        new_name = str(getattr(state, "value", state)).lower().replace("_", "-")
        event = {
            "open": "circuit_breaker_opened",
            "half-open": "circuit_breaker_half_open",
            "closed": "circuit_breaker_closed",
        }.get(new_name, f"circuit_breaker_{new_name}")

        getattr(logger, "error" if new_name == "open" else "info")(
            f"Circuit breaker {self.dependency}: {new_name}",
            extra={
                "resilience_event": event,
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
            },
        )

    def failure(self, cb: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        logger.warning(
            f"Circuit breaker {self.dependency}: failure recorded",
            extra={
                "resilience_event": "circuit_breaker_failure",
                "dependency": self.dependency,
                "failure_count": cb.fail_counter,
                "error": str(exception),
            },
        )


def create_circuit_breaker(
    dependency: str,
    fail_max: int = 5,
    reset_seconds: int = 30,
) -> aiobreaker.CircuitBreaker:
    return aiobreaker.CircuitBreaker(
        fail_max=fail_max,
        timeout_duration=timedelta(seconds=reset_seconds),
        listeners=[ResilienceLogger(dependency)],
    )


def get_circuit_breaker(dependency: str) -> aiobreaker.CircuitBreaker:
    """
    Shared breaker for ``dependency``.

    Thresholds come from integrations.yaml under ``resilience``.
    """
    if dependency not in _breakers:
        from crm.backend.core.config import get_app_config

        config = get_app_config().integrations.resilience
        _breakers[dependency] = create_circuit_breaker(
            dependency,
            fail_max=config.breaker_fail_max,
            reset_seconds=config.breaker_reset_seconds,
        )
    return _breakers[dependency]


def reset_circuit_breakers() -> None:
    _breakers.clear()
