# =============================================================================
# tests/test_resilience.py - Resilience Pipeline Tests
# =============================================================================
# Tests for retries, the circuit breaker and timeouts of ResilientTransport.
# Backoff is disabled (retry_base_delay=0) so retries run immediately.
# =============================================================================

import asyncio
import warnings

import httpx
import pytest

from servicedefaults.exceptions import CircuitOpenError
from servicedefaults.resilience import (
    CircuitBreaker,
    ResilienceOptions,
    ResilientTransport,
    is_transient_exception,
    is_transient_response,
)

URL = "http://apiservice.test/weatherforecast"


def fast_options(**overrides) -> ResilienceOptions:
    return ResilienceOptions(retry_base_delay=0, **overrides)


def scripted_handler(outcomes):
    """MockTransport handler replaying status codes and exceptions in order."""
    calls = []

    def handler(request):
        outcome = outcomes[min(len(calls), len(outcomes) - 1)]
        calls.append(request)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"attempt": len(calls)})

    return handler, calls


def send(transport, url=URL):
    async def call():
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.get(url)
            await response.aread()
            return response

    return asyncio.run(call())


class TestTransientClassification:
    """Tests for which outcomes are retried."""

    @pytest.mark.parametrize("status_code", [408, 429, 500, 502, 503, 504])
    def test_transient_status_codes(self, status_code):
        assert is_transient_response(httpx.Response(status_code))

    @pytest.mark.parametrize("status_code", [200, 201, 301, 400, 401, 404, 409])
    def test_non_transient_status_codes(self, status_code):
        assert not is_transient_response(httpx.Response(status_code))

    def test_transient_exceptions(self):
        assert is_transient_exception(httpx.ConnectError("refused"))
        assert is_transient_exception(httpx.ReadTimeout("slow"))
        assert is_transient_exception(httpx.RemoteProtocolError("closed"))

    def test_circuit_open_is_not_transient(self):
        assert not is_transient_exception(CircuitOpenError("open"))
        assert not is_transient_exception(ValueError("bug"))


class TestRetries:
    """Tests for the retry stage."""

    def test_success_makes_one_call(self):
        handler, calls = scripted_handler([200])

        response = send(ResilientTransport(httpx.MockTransport(handler), fast_options()))

        assert response.status_code == 200
        assert len(calls) == 1

    def test_transient_status_is_retried(self):
        """Test a 503 followed by a 200 returns the 200."""
        handler, calls = scripted_handler([503, 200])

        response = send(ResilientTransport(httpx.MockTransport(handler), fast_options()))

        assert response.status_code == 200
        assert response.json() == {"attempt": 2}
        assert len(calls) == 2

    def test_returns_last_response_when_retries_exhausted(self):
        """Test the final transient response is returned after all retries."""
        handler, calls = scripted_handler([500])

        response = send(ResilientTransport(httpx.MockTransport(handler), fast_options()))

        assert response.status_code == 500
        assert response.json() == {"attempt": 4}
        assert len(calls) == 4

    def test_non_transient_status_not_retried(self):
        handler, calls = scripted_handler([404])

        response = send(ResilientTransport(httpx.MockTransport(handler), fast_options()))

        assert response.status_code == 404
        assert len(calls) == 1

    def test_network_error_is_retried(self):
        handler, calls = scripted_handler([httpx.ConnectError("refused"), httpx.ConnectError("refused"), 200])

        response = send(ResilientTransport(httpx.MockTransport(handler), fast_options()))

        assert response.status_code == 200
        assert len(calls) == 3

    def test_network_error_reraised_when_retries_exhausted(self):
        handler, calls = scripted_handler([httpx.ConnectError("refused")])

        with pytest.raises(httpx.ConnectError):
            send(ResilientTransport(httpx.MockTransport(handler), fast_options()))

        assert len(calls) == 4

    def test_retry_count_is_configurable(self):
        handler, calls = scripted_handler([503])

        response = send(ResilientTransport(httpx.MockTransport(handler), fast_options(max_retry_attempts=0)))

        assert response.status_code == 503
        assert len(calls) == 1


class TestCircuitBreaker:
    """Tests for the circuit breaker state machine."""

    @pytest.fixture
    def clock(self):
        now = [0.0]

        def read():
            return now[0]

        read.now = now
        return read

    @pytest.fixture
    def breaker(self, clock):
        options = ResilienceOptions(minimum_throughput=2, failure_ratio=0.5, break_duration=5, sampling_duration=30)
        return CircuitBreaker(options, clock)

    @pytest.fixture
    def request_(self):
        return httpx.Request("GET", URL)

    def test_stays_closed_below_minimum_throughput(self, breaker, request_):
        breaker.before_attempt(request_)
        breaker.record(failed=True)

        assert breaker.state == CircuitBreaker.CLOSED

    def test_opens_at_failure_ratio(self, breaker, request_):
        breaker.record(failed=True)
        breaker.record(failed=True)

        assert breaker.state == CircuitBreaker.OPEN
        with pytest.raises(CircuitOpenError):
            breaker.before_attempt(request_)

    def test_half_open_allows_single_trial(self, breaker, clock, request_):
        breaker.record(failed=True)
        breaker.record(failed=True)

        clock.now[0] = 5.0
        assert breaker.state == CircuitBreaker.HALF_OPEN

        assert breaker.before_attempt(request_) is True
        with pytest.raises(CircuitOpenError):
            breaker.before_attempt(request_)

    def test_successful_trial_closes(self, breaker, clock, request_):
        breaker.record(failed=True)
        breaker.record(failed=True)
        clock.now[0] = 5.0

        trial = breaker.before_attempt(request_)
        breaker.record(failed=False, trial=trial)

        assert breaker.state == CircuitBreaker.CLOSED
        assert breaker.before_attempt(request_) is False

    def test_failed_trial_reopens(self, breaker, clock, request_):
        breaker.record(failed=True)
        breaker.record(failed=True)
        clock.now[0] = 5.0

        trial = breaker.before_attempt(request_)
        breaker.record(failed=True, trial=trial)

        assert breaker.state == CircuitBreaker.OPEN
        clock.now[0] = 9.0
        assert breaker.state == CircuitBreaker.OPEN
        clock.now[0] = 10.0
        assert breaker.state == CircuitBreaker.HALF_OPEN

    def test_old_samples_leave_the_window(self, breaker, clock):
        breaker.record(failed=True)
        clock.now[0] = 31.0
        breaker.record(failed=True)

        assert breaker.state == CircuitBreaker.CLOSED

    def test_late_success_does_not_close_open_circuit(self, breaker, request_):
        """Test outcomes of attempts admitted while closed are dropped once open."""
        admitted = [breaker.before_attempt(request_) for _ in range(3)]
        breaker.record(failed=True, trial=admitted[0])
        breaker.record(failed=True, trial=admitted[1])
        assert breaker.state == CircuitBreaker.OPEN

        breaker.record(failed=False, trial=admitted[2])

        assert breaker.state == CircuitBreaker.OPEN

    def test_late_failure_does_not_extend_break(self, breaker, clock, request_):
        admitted = [breaker.before_attempt(request_) for _ in range(3)]
        breaker.record(failed=True, trial=admitted[0])
        breaker.record(failed=True, trial=admitted[1])

        clock.now[0] = 4.0
        breaker.record(failed=True, trial=admitted[2])

        clock.now[0] = 5.0
        assert breaker.state == CircuitBreaker.HALF_OPEN

    def test_late_outcome_during_trial_is_ignored(self, breaker, clock, request_):
        """Test only the trial's own outcome decides the half-open state."""
        late = breaker.before_attempt(request_)
        breaker.record(failed=True)
        breaker.record(failed=True)
        clock.now[0] = 5.0
        trial = breaker.before_attempt(request_)

        breaker.record(failed=False, trial=late)

        assert breaker.state == CircuitBreaker.HALF_OPEN
        assert breaker.trial_in_flight
        breaker.record(failed=False, trial=trial)
        assert breaker.state == CircuitBreaker.CLOSED

    def test_released_trial_admits_next_attempt(self, breaker, clock, request_):
        breaker.record(failed=True)
        breaker.record(failed=True)
        clock.now[0] = 5.0
        breaker.before_attempt(request_)

        breaker.release_trial()

        assert breaker.state == CircuitBreaker.HALF_OPEN
        assert breaker.before_attempt(request_) is True

    def test_cancelled_trial_frees_half_open_slot(self):
        """Test cancelling the trial request lets the next request try again."""
        now = [0.0]

        async def scenario():
            statuses = [500, 500, None, 200]
            entered = asyncio.Event()
            calls = []

            async def handler(request):
                status = statuses[len(calls)]
                calls.append(request)
                if status is None:
                    entered.set()
                    await asyncio.Event().wait()
                return httpx.Response(status)

            transport = ResilientTransport(
                httpx.MockTransport(handler),
                fast_options(max_retry_attempts=0, minimum_throughput=2, failure_ratio=0.5),
                clock=lambda: now[0],
            )
            async with httpx.AsyncClient(transport=transport) as client:
                assert (await client.get(URL)).status_code == 500
                assert (await client.get(URL)).status_code == 500
                assert transport.circuit_breaker.state == CircuitBreaker.OPEN

                now[0] = 5.0
                trial = asyncio.create_task(client.get(URL))
                await entered.wait()
                trial.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await trial

                assert not transport.circuit_breaker.trial_in_flight
                response = await client.get(URL)

            return transport, response, calls

        transport, response, calls = asyncio.run(scenario())

        assert response.status_code == 200
        assert len(calls) == 4
        assert transport.circuit_breaker.state == CircuitBreaker.CLOSED

    def test_transport_stops_sending_while_open(self):
        """Test an open circuit fails fast without reaching the network."""
        handler, calls = scripted_handler([500])
        transport = ResilientTransport(
            httpx.MockTransport(handler),
            fast_options(max_retry_attempts=1, minimum_throughput=2, failure_ratio=0.5),
        )

        assert send(transport).status_code == 500
        assert len(calls) == 2
        assert transport.circuit_breaker.state == CircuitBreaker.OPEN

        with pytest.raises(CircuitOpenError):
            send(transport)

        assert len(calls) == 2


class TestTimeouts:
    """Tests for attempt and total timeouts."""

    def test_attempt_timeout(self):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        transport = ResilientTransport(
            httpx.MockTransport(slow),
            fast_options(attempt_timeout=0.01, max_retry_attempts=0),
        )

        with pytest.raises(httpx.TimeoutException):
            send(transport)

    def test_slow_attempt_is_retried(self):
        calls = []

        async def slow_then_fast(request):
            calls.append(request)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return httpx.Response(200)

        transport = ResilientTransport(
            httpx.MockTransport(slow_then_fast),
            fast_options(attempt_timeout=0.05),
        )

        assert send(transport).status_code == 200
        assert len(calls) == 2

    def test_total_timeout(self):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        transport = ResilientTransport(
            httpx.MockTransport(slow),
            fast_options(total_request_timeout=0.05, attempt_timeout=5),
        )

        with pytest.raises(httpx.TimeoutException, match="total timeout"):
            send(transport)


class TestResilienceOptions:
    def test_defaults(self):
        options = ResilienceOptions()

        assert options.total_request_timeout == 30.0
        assert options.attempt_timeout == 10.0
        assert options.max_retry_attempts == 3
        assert options.retry_base_delay == 2.0
        assert options.failure_ratio == 0.1
        assert options.minimum_throughput == 100
        assert options.sampling_duration == 30.0
        assert options.break_duration == 5.0

    def test_backoff_uses_current_tenacity_arguments(self):
        """Test building the retry policy emits no tenacity deprecation warning."""
        handler, calls = scripted_handler([200])
        transport = ResilientTransport(httpx.MockTransport(handler), ResilienceOptions())

        with warnings.catch_warnings():
            warnings.filterwarnings("error", message=".*parameter is deprecated", category=DeprecationWarning)
            assert send(transport).status_code == 200

    def test_rejects_invalid_ratio(self):
        with pytest.raises(ValueError):
            ResilienceOptions(failure_ratio=1.5)
