"""
Circuit Breaker configuration for payment processor calls.

Wraps every Stripe API call so that a processor outage fails fast instead of
piling up blocked requests.

Circuit Breaker Pattern:
- CLOSED: Normal operation, requests pass through
- OPEN: Too many failures, requests fail immediately
- HALF_OPEN: Testing if service recovered, limited requests allowed

Configuration:
- fail_max: Number of consecutive failures before opening circuit
- reset_timeout: Seconds to wait before attempting recovery (HALF_OPEN)
- exclude: Exceptions that don't count as failures (caller errors)
"""

import logging

import stripe
from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

logger = logging.getLogger(__name__)


def log_circuit_state_change(breaker_name: str, old_state: str, new_state: str) -> None:
    """Log circuit breaker state changes for monitoring and alerting."""
    logger.warning(
        "Circuit breaker state changed",
        extra={
            "breaker_name": breaker_name,
            "old_state": old_state,
            "new_state": new_state,
        },
    )


class StateChangeLogger(CircuitBreakerListener):
    """Listener for circuit breaker state changes."""

    def __init__(self, name: str):
        self.name = name

    def state_change(self, cb, old_state, new_state):
        old_name = old_state.name if old_state is not None else "none"
        log_circuit_state_change(self.name, old_name, new_state.name)


def build_stripe_breaker(fail_max: int = 5, reset_timeout: int = 60) -> CircuitBreaker:
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name="stripe_circuit_breaker",
        # Rejected requests and bad signatures are our fault, not an outage.
        exclude=[stripe.InvalidRequestError, stripe.CardError, stripe.SignatureVerificationError],
        listeners=[StateChangeLogger("stripe")],
    )


stripe_breaker = build_stripe_breaker()


__all__ = [
    "stripe_breaker",
    "build_stripe_breaker",
    "CircuitBreakerError",
]
