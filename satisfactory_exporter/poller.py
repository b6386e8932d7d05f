"""
Background poller for the server state
Fetches on a fixed interval and publishes each snapshot to the metrics registry

The loop waits for each fetch to finish before computing the next delay, so
there is never more than one fetch in flight. A fetch that overruns the
interval pushes the next attempt back instead of overlapping it. Failures
leave the registry untouched and are retried on the next tick at the same
fixed rate.
"""
import asyncio
from datetime import datetime, timezone
from typing import Optional
import structlog

from .exceptions import FetchError, UpstreamAuthenticationError
from .metrics import MetricsRegistry
from .models import LastError, PollerState, PollerStatus, PollOutcome

logger = structlog.get_logger(__name__)


class Poller:
    """
    Periodically fetches the server state and updates the registry

    Usage:
        poller = Poller(client, registry, interval=5)
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(self, client, registry: MetricsRegistry, interval: float, shutdown_timeout: float = 2.0):
        self.client = client
        self.registry = registry
        self.interval = interval
        self.shutdown_timeout = shutdown_timeout
        self.running = False
        self._state = PollerState.IDLE
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

        self._total_polls = 0
        self._successful_polls = 0
        self._consecutive_failures = 0
        self._last_success_at: Optional[datetime] = None
        self._last_failure_at: Optional[datetime] = None
        self._last_error: Optional[LastError] = None

    @property
    def state(self) -> PollerState:
        return self._state

    def status(self) -> PollerStatus:
        """Counters and latest outcome, for the health endpoint"""
        return PollerStatus(
            state=self._state,
            total_polls=self._total_polls,
            successful_polls=self._successful_polls,
            failed_polls=self._total_polls - self._successful_polls,
            consecutive_failures=self._consecutive_failures,
            last_success_at=self._last_success_at,
            last_failure_at=self._last_failure_at,
            last_error=self._last_error,
        )

    async def start(self):
        """Start the polling loop"""
        if self._task is not None:
            return

        self.running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("poller_started", interval_seconds=self.interval)

    async def stop(self):
        """Stop the polling loop, cancelling an in-flight fetch after the grace period"""
        if self._task is None:
            return

        self.running = False
        self._stop_event.set()

        # Only the caller's cancellation escapes asyncio.wait
        done, _ = await asyncio.wait({self._task}, timeout=self.shutdown_timeout)
        if not done:
            logger.warning("poller_stop_timed_out", timeout_seconds=self.shutdown_timeout)
            self._task.cancel()
            await asyncio.wait({self._task})
        self._task = None

        self._state = PollerState.IDLE
        logger.info("poller_stopped", total_polls=self._total_polls)

    async def run_once(self) -> PollOutcome:
        """
        Run one poll cycle

        Never raises for upstream failures: they are logged, recorded and
        returned as a failed PollOutcome.
        """
        loop = asyncio.get_running_loop()
        started_at = datetime.now(timezone.utc)
        started = loop.time()
        self._total_polls += 1
        self._state = PollerState.FETCHING

        try:
            snapshot = await self.client.fetch()
        except FetchError as e:
            self._state = PollerState.BACKOFF
            outcome = PollOutcome(
                started_at=started_at,
                duration_seconds=loop.time() - started,
                error_type=e.kind,
                error_message=e.message,
            )
            self._record_failure(outcome)
            self._state = PollerState.IDLE
            return outcome
        except Exception as e:
            self._state = PollerState.BACKOFF
            logger.error("poll_cycle_error", error=str(e), error_type=type(e).__name__, exc_info=True)
            outcome = PollOutcome(
                started_at=started_at,
                duration_seconds=loop.time() - started,
                error_type="unexpected",
                error_message=f"{type(e).__name__}: {e}",
            )
            self._record_failure(outcome, logged=True)
            self._state = PollerState.IDLE
            return outcome

        self._state = PollerState.UPDATING
        self.registry.update(snapshot)
        outcome = PollOutcome(
            started_at=started_at,
            duration_seconds=loop.time() - started,
            snapshot=snapshot,
        )
        self._record_success(outcome)
        self._state = PollerState.IDLE
        return outcome

    async def _poll_loop(self):
        """Fixed-interval loop, measured start to start"""
        loop = asyncio.get_running_loop()

        while not self._stop_event.is_set():
            cycle_started = loop.time()
            await self.run_once()

            elapsed = loop.time() - cycle_started
            if elapsed > self.interval:
                logger.warning(
                    "poll_cycle_overrun",
                    elapsed_seconds=round(elapsed, 3),
                    interval_seconds=self.interval
                )

            delay = max(0.0, self.interval - elapsed)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    def _record_success(self, outcome: PollOutcome):
        if self._consecutive_failures:
            logger.info("upstream_recovered", after_failures=self._consecutive_failures)

        self._successful_polls += 1
        self._consecutive_failures = 0
        self._last_success_at = outcome.started_at

        snapshot = outcome.snapshot
        logger.debug(
            "server_state_updated",
            num_connected_players=snapshot.num_connected_players,
            tech_tier=snapshot.tech_tier,
            total_game_duration=snapshot.total_game_duration,
            average_tick_rate=snapshot.average_tick_rate,
            duration_ms=round(outcome.duration_seconds * 1000, 2)
        )

    def _record_failure(self, outcome: PollOutcome, logged: bool = False):
        self._consecutive_failures += 1
        self._last_failure_at = outcome.started_at
        self._last_error = LastError(type=outcome.error_type, message=outcome.error_message)

        if logged:
            return

        if outcome.error_type == UpstreamAuthenticationError.kind:
            logger.error(
                "upstream_auth_rejected",
                error=outcome.error_message,
                consecutive_failures=self._consecutive_failures
            )
        else:
            logger.warning(
                "upstream_fetch_failed",
                error_type=outcome.error_type,
                error=outcome.error_message,
                consecutive_failures=self._consecutive_failures,
                duration_ms=round(outcome.duration_seconds * 1000, 2)
            )
