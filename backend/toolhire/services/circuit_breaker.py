"""
ToolHire Backend: Circuit Breaker
===================================

What:  Per-dependency circuit breaker for outbound HTTP calls.
Why:   When the exchange-rate API or the payment provider is down, every
       call would otherwise wait out its timeout and retries. An open
       circuit fails in under a millisecond and lets the caller fall back.
Who:   One instance each in ExchangeRateService and StripePaymentGateway;
       the health route reports their state.

State Machine:
    CLOSED (normal operation)
        → On failure: increment failure_count
        → When failure_count >= threshold: transition to OPEN
    OPEN (rejecting all requests)
        → All calls raise CircuitBreakerOpenError immediately
        → After recovery_timeout seconds: transition to HALF_OPEN
    HALF_OPEN (testing recovery)
        → On success: CLOSED (reset failure_count)
        → On failure: back to OPEN (reset timer)

Thread Safety:
    Plain counters, no locks. uvicorn async workers run in one thread per
    process, so state is consistent within a worker but not shared across
    workers.
"""

import logging
import time
from typing import Any, Dict, Optional

from toolhire.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a call is allowed through.

        Returns True when CLOSED or HALF_OPEN (including the OPEN → HALF_OPEN
        transition once the recovery window has elapsed).

        Raises:
            CircuitBreakerOpenError while OPEN inside the recovery window.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker '%s' transitioning to HALF_OPEN after %.1fs",
                    self.name,
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = max(1, int(self.recovery_timeout - elapsed))
            raise CircuitBreakerOpenError(recovery_time=remaining, service=self.name)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker '%s' transitioning to CLOSED (service recovered)", self.name)
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker '%s' returning to OPEN (test call failed)", self.name)
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker '%s' OPENING after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self.state = self.OPEN

    def reset(self) -> None:
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state,
            "failure_count": self.failure_count,
        }
