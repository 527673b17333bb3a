# =============================================================================
# servicedefaults/resilience.py - Standard HTTP Resilience
# =============================================================================
# An httpx transport applying the standard resilience pipeline to every
# outbound request. Outermost first:
#
#   1. Total request timeout      (covers all attempts and backoff)
#   2. Retry                      (tenacity, exponential backoff with jitter)
#   3. Circuit breaker            (failure ratio over a sampling window)
#   4. Attempt timeout            (per attempt)
#
# Transient outcomes: network errors, timeouts, HTTP 408, 429 and 5xx.
# =============================================================================

import asyncio
import logging
import time
from collections import deque
from typing import Callable

import httpx
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_exponential_jitter,
)

from servicedefaults.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 429})


class ResilienceOptions(BaseModel):
    """Parameters of the standard resilience pipeline."""

    total_request_timeout: float = Field(default=30.0, gt=0, description="Seconds for the whole call")
    attempt_timeout: float = Field(default=10.0, gt=0, description="Seconds per attempt")

    max_retry_attempts: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_base_delay: float = Field(default=2.0, ge=0, description="Initial backoff in seconds")
    retry_max_delay: float = Field(default=30.0, ge=0, description="Cap on a single backoff")

    failure_ratio: float = Field(default=0.1, gt=0, le=1, description="Failure ratio that opens the circuit")
    minimum_throughput: int = Field(default=100, ge=1, description="Attempts needed before the ratio applies")
    sampling_duration: float = Field(default=30.0, gt=0, description="Sliding window in seconds")
    break_duration: float = Field(default=5.0, gt=0, description="Seconds the circuit stays open")


def is_transient_response(response: httpx.Response) -> bool:
    return response.status_code in TRANSIENT_STATUS_CODES or response.status_code >= 500


def is_transient_exception(exc: BaseException) -> bool:
    if isinstance(exc, CircuitOpenError):
        return False
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError))


class CircuitBreaker:
    """
    Failure-ratio circuit breaker.

    Closed: attempts flow, outcomes are sampled over sampling_duration.
    Once at least minimum_throughput outcomes were sampled and the failure
    ratio reaches failure_ratio, the circuit opens for break_duration.
    After that a single trial attempt is let through (half-open); only its
    outcome closes or re-opens the circuit. Outcomes of attempts admitted
    before the circuit opened are dropped.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, options: ResilienceOptions, clock: Callable[[], float] = time.monotonic):
        self._options = options
        self._clock = clock
        self._samples: deque[tuple[float, bool]] = deque()
        self._opened_at: float | None = None
        self._trial_in_flight = False

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return self.CLOSED
        if self._clock() - self._opened_at >= self._options.break_duration:
            return self.HALF_OPEN
        return self.OPEN

    @property
    def trial_in_flight(self) -> bool:
        return self._trial_in_flight

    def before_attempt(self, request: httpx.Request) -> bool:
        """
        Admit an attempt or raise CircuitOpenError.

        Returns:
            True when the attempt is the half-open trial; pass it back to
            record() or release_trial()
        """
        state = self.state
        if state == self.OPEN or (state == self.HALF_OPEN and self._trial_in_flight):
            raise CircuitOpenError(
                f"Circuit is open for {request.url.host}; request not sent",
                request=request,
            )
        if state == self.HALF_OPEN:
            self._trial_in_flight = True
            return True
        return False

    def record(self, failed: bool, trial: bool = False) -> None:
        now = self._clock()

        if trial:
            self._trial_in_flight = False
            self._samples.clear()
            if failed:
                self._open(now)
            else:
                logger.info("Circuit closed after successful trial request")
                self._opened_at = None
            return

        if self._opened_at is not None:
            return

        self._samples.append((now, failed))
        while self._samples and now - self._samples[0][0] > self._options.sampling_duration:
            self._samples.popleft()

        if len(self._samples) < self._options.minimum_throughput:
            return
        failures = sum(1 for _, sample_failed in self._samples if sample_failed)
        if failures / len(self._samples) >= self._options.failure_ratio:
            self._samples.clear()
            self._open(now)

    def release_trial(self) -> None:
        """Give up the trial slot without an outcome (the attempt was cancelled)."""
        self._trial_in_flight = False

    def _open(self, now: float) -> None:
        logger.warning(f"Circuit opened for {self._options.break_duration}s")
        self._opened_at = now


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    # Out of retries: hand back the last response, or re-raise the last error
    return retry_state.outcome.result()


class ResilientTransport(httpx.AsyncBaseTransport):
    """httpx transport wrapping another transport with the resilience pipeline."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        options: ResilienceOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._transport = transport
        self.options = options or ResilienceOptions()
        self.circuit_breaker = CircuitBreaker(self.options, clock)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        try:
            return await asyncio.wait_for(
                self._send_with_retries(request),
                timeout=self.options.total_request_timeout,
            )
        except asyncio.TimeoutError:
            raise httpx.TimeoutException(
                f"Request exceeded {self.options.total_request_timeout}s total timeout",
                request=request,
            ) from None

    async def _send_with_retries(self, request: httpx.Request) -> httpx.Response:
        options = self.options
        response = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(options.max_retry_attempts + 1),
            wait=wait_exponential_jitter(
                multiplier=options.retry_base_delay,
                max=options.retry_max_delay,
                jitter=options.retry_base_delay,
            ),
            retry=retry_if_exception(is_transient_exception) | retry_if_result(is_transient_response),
            retry_error_callback=_last_outcome,
        )

        async for attempt in retrying:
            if response is not None:
                # A transient response is being retried; release it first
                await response.aclose()
                response = None
            number = attempt.retry_state.attempt_number
            if number > 1:
                logger.info(f"Retrying {request.method} {request.url} (attempt {number})")
            with attempt:
                response = await self._send_attempt(request)
            if not attempt.retry_state.outcome.failed:
                attempt.retry_state.set_result(response)

        return response

    async def _send_attempt(self, request: httpx.Request) -> httpx.Response:
        breaker = self.circuit_breaker
        trial = breaker.before_attempt(request)
        try:
            response = await asyncio.wait_for(
                self._transport.handle_async_request(request),
                timeout=self.options.attempt_timeout,
            )
        except asyncio.TimeoutError:
            breaker.record(failed=True, trial=trial)
            raise httpx.TimeoutException(
                f"Attempt exceeded {self.options.attempt_timeout}s timeout",
                request=request,
            ) from None
        except asyncio.CancelledError:
            if trial:
                breaker.release_trial()
            raise
        except Exception as e:
            breaker.record(failed=is_transient_exception(e), trial=trial)
            raise

        breaker.record(failed=is_transient_response(response), trial=trial)
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()
