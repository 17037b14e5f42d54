"""Unit tests for crm.backend.core.resilience."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from crm.backend.core.resilience import (
    ResilienceLogger,
    create_circuit_breaker,
    get_circuit_breaker,
    reset_circuit_breakers,
)


class TestResilienceLogger:
    def test_state_change_open(self):
        cb = MagicMock()
        cb.fail_counter = 5

        with patch("crm.backend.core.resilience.logger") as mock_logger:
            ResilienceLogger("ovh").state_change(cb, "closed", "open")

        mock_logger.error.assert_called_once()
        assert "circuit_breaker_opened" in str(mock_logger.error.call_args)

    def test_state_change_closed(self):
        cb = MagicMock()
        cb.fail_counter = 0

        with patch("crm.backend.core.resilience.logger") as mock_logger:
            ResilienceLogger("ovh").state_change(cb, "open", "closed")

        mock_logger.info.assert_called_once()
        assert "circuit_breaker_closed" in str(mock_logger.info.call_args)

    def test_state_object_is_unwrapped(self):
        cb = MagicMock()
        cb.fail_counter = 3
        state = SimpleNamespace(state=SimpleNamespace(value="half-open"))

        with patch("crm.backend.core.resilience.logger") as mock_logger:
            ResilienceLogger("graph").state_change(cb, "open", state)

        assert "circuit_breaker_half_open" in str(mock_logger.info.call_args)

    def test_failure(self):
        cb = MagicMock()
        cb.fail_counter = 2

        with patch("crm.backend.core.resilience.logger") as mock_logger:
            ResilienceLogger("gocardless").failure(cb, ConnectionError("timeout"))

        mock_logger.warning.assert_called_once()
        assert "timeout" in str(mock_logger.warning.call_args)


class TestBreakers:
    def test_create_with_thresholds(self):
        breaker = create_circuit_breaker("ovh", fail_max=3, reset_seconds=10)

        assert breaker.fail_max == 3

    def test_one_breaker_per_service(self):
        reset_circuit_breakers()
        try:
            assert get_circuit_breaker("ovh") is get_circuit_breaker("ovh")
            assert get_circuit_breaker("ovh") is not get_circuit_breaker("graph")
        finally:
            reset_circuit_breakers()
