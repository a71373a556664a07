"""
Countdown timing for quiz attempts.

The attempt timer is driven by an injected tick source instead of sleeping
directly, so tests can advance a fake clock and fire ticks on demand.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class Clock:
    """Source of time for the engine."""

    def monotonic(self) -> float:
        """Seconds from an arbitrary fixed point, never going backwards."""
        raise NotImplementedError

    def utcnow(self) -> datetime:
        """Current wall-clock time, timezone aware."""
        raise NotImplementedError


class SystemClock(Clock):
    """Clock backed by the host's clocks."""

    def monotonic(self) -> float:
        return time.monotonic()

    def utcnow(self) -> datetime:
        return datetime.now(timezone.utc)


class TickHandle:
    """Handle to a repeating callback; cancelling it stops further calls."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class TickSource:
    """Schedules repeating callbacks."""

    def schedule_repeating(self, interval: float, callback: Callable[[], Any]) -> TickHandle:
        """
        Call ``callback`` every ``interval`` seconds until the handle is cancelled.

        Args:
            interval: Seconds between calls
            callback: Synchronous callable invoked on each tick

        Returns:
            Handle used to cancel the schedule
        """
        raise NotImplementedError


class AsyncioTickHandle(TickHandle):
    """Tick handle owning the background asyncio task."""

    def __init__(self):
        super().__init__()
        self.task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        task = self.task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # A tick callback cancelling its own schedule just lets the loop exit.
        if task is not current:
            task.cancel()


class AsyncioTickSource(TickSource):
    """Tick source running each schedule as a task on the running event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def schedule_repeating(self, interval: float, callback: Callable[[], Any]) -> TickHandle:
        """
        Start a background task that sleeps ``interval`` between callbacks.

        Raises:
            RuntimeError: If no loop was given and none is running
        """
        loop = self._loop or asyncio.get_running_loop()
        handle = AsyncioTickHandle()
        handle.task = loop.create_task(self._run(interval, callback, handle))
        return handle

    async def _run(self, interval: float, callback: Callable[[], Any], handle: AsyncioTickHandle) -> None:
        try:
            while not handle.cancelled:
                await asyncio.sleep(interval)
                if handle.cancelled:
                    break
                callback()
        except asyncio.CancelledError:
            logger.debug("Tick task cancelled")
            raise
        except Exception as e:
            logger.error(f"Tick callback failed: {e}", exc_info=True)
            raise


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_creation(attempt_id: str, duration: int) -> None:
        """Log timer creation event with structured data."""
        logger.info(
            f"Timer lifecycle: CREATED - Attempt {attempt_id}, Duration {duration}s",
            extra={
                'event_type': 'timer_created',
                'attempt_id': attempt_id,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_start(attempt_id: str, start_timestamp: float) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Attempt {attempt_id}",
            extra={
                'event_type': 'timer_countdown_start',
                'attempt_id': attempt_id,
                'start_timestamp': start_timestamp,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(attempt_id: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        # Log only at specific intervals to avoid log spam
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100 if total_duration else 100.0
            logger.debug(
                f"Timer lifecycle: UPDATE - Attempt {attempt_id}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'attempt_id': attempt_id,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(attempt_id: str, completion_type: str, elapsed: int) -> None:
        """Log timer completion (expiry, submission or abandonment)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Attempt {attempt_id}, Type {completion_type}, Elapsed {elapsed}s",
            extra={
                'event_type': 'timer_completed',
                'attempt_id': attempt_id,
                'completion_type': completion_type,
                'elapsed': elapsed,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(attempt_id: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.debug(
            f"Timer lifecycle: STATE_TRANSITION - Attempt {attempt_id}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'attempt_id': attempt_id,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_race_condition_detected(attempt_id: str, details: str) -> None:
        """Log race condition detection."""
        logger.warning(
            f"Timer lifecycle: RACE_CONDITION - Attempt {attempt_id}: {details}",
            extra={
                'event_type': 'timer_race_condition',
                'attempt_id': attempt_id,
                'details': details,
                'timestamp': time.time()
            }
        )


class TimerController:
    """Countdown for one attempt, firing a single expiry when time runs out."""

    TICK_INTERVAL_SECONDS = 1.0

    def __init__(
        self,
        duration_seconds: int,
        on_expire: Callable[[], Any],
        clock: Optional[Clock] = None,
        tick_source: Optional[TickSource] = None,
        on_tick: Optional[Callable[[int], Any]] = None,
        attempt_id: str = None,
        tick_interval: Optional[float] = None
    ):
        """
        Initialize the timer.

        Args:
            duration_seconds: Total time allowed for the attempt
            on_expire: Called once when the remaining time reaches zero
            clock: Time source; SystemClock if None
            tick_source: Scheduler for ticks; AsyncioTickSource if None
            on_tick: Called on each tick with the remaining seconds
            attempt_id: Identifier used in log records
            tick_interval: Seconds between ticks, TICK_INTERVAL_SECONDS if None
        """
        self._duration = max(0, int(duration_seconds))
        self._on_expire = on_expire
        self._on_tick = on_tick
        self._clock = clock or SystemClock()
        self._tick_source = tick_source or AsyncioTickSource()
        self._tick_interval = tick_interval or self.TICK_INTERVAL_SECONDS
        self._attempt_id = attempt_id

        self._handle: Optional[TickHandle] = None
        self._start_timestamp: Optional[float] = None
        self._remaining = self._duration
        self._running = False
        self._expired = False

        TimerLifecycleLogger.log_timer_creation(attempt_id, self._duration)

    def start(self) -> None:
        """
        Record the start time and begin ticking.

        Raises:
            RuntimeError: If the timer was already started
        """
        if self._start_timestamp is not None:
            TimerLifecycleLogger.log_race_condition_detected(
                self._attempt_id, "start requested on a timer that already started"
            )
            raise RuntimeError(f"Timer for attempt {self._attempt_id} already started")

        self._start_timestamp = self._clock.monotonic()
        self._remaining = self._duration
        self._running = True
        TimerLifecycleLogger.log_timer_start(self._attempt_id, self._start_timestamp)
        self._handle = self._tick_source.schedule_repeating(self._tick_interval, self._tick)

    def _tick(self) -> None:
        if not self._running:
            # Late tick delivered after stop
            return

        remaining = max(0, self._duration - self.elapsed_seconds())
        self._remaining = min(self._remaining, remaining)
        TimerLifecycleLogger.log_timer_update(self._attempt_id, self._remaining, self._duration)

        if self._on_tick is not None:
            self._on_tick(self._remaining)
            if not self._running:
                # Stopped from inside the tick callback
                return

        if self._remaining == 0:
            self._fire_expiry()

    def _fire_expiry(self) -> None:
        if self._expired:
            TimerLifecycleLogger.log_race_condition_detected(
                self._attempt_id, "expiry already fired, ignoring repeat"
            )
            return
        self._expired = True
        self.stop("expired")
        self._on_expire()

    def stop(self, reason: str = "stopped") -> bool:
        """
        Stop ticking and release the schedule.

        Args:
            reason: Completion type recorded in the log

        Returns:
            True if the timer was running, False if it had already stopped
        """
        if not self._running:
            TimerLifecycleLogger.log_timer_state_transition(
                self._attempt_id, "stopped", "stopped", f"stop({reason}) on inactive timer"
            )
            return False

        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        TimerLifecycleLogger.log_timer_completion(self._attempt_id, reason, self.elapsed_seconds())
        return True

    def elapsed_seconds(self) -> int:
        """Whole seconds since start, 0 if not started."""
        if self._start_timestamp is None:
            return 0
        return max(0, int(self._clock.monotonic() - self._start_timestamp))

    @property
    def duration_seconds(self) -> int:
        return self._duration

    @property
    def remaining_seconds(self) -> int:
        """Remaining seconds as of the last tick."""
        return self._remaining

    @property
    def start_timestamp(self) -> Optional[float]:
        return self._start_timestamp

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_expired(self) -> bool:
        return self._expired
