"""
Countdown timing for the Trivia Quiz Bot.
Handles the per-question countdown and its lifecycle logging.
"""
import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Optional

from .models import TimerState

# Set up logger for timer operations
logger = logging.getLogger(__name__)


def format_time(seconds: int) -> str:
    """
    Format a number of seconds for display.

    Values of a minute or more render as M:SS, shorter ones as Ns.
    """
    if seconds >= 60:
        minutes, remaining_seconds = divmod(seconds, 60)
        return f"{minutes}:{remaining_seconds:02d}"
    return f"{seconds}s"


async def _invoke(callback: Optional[Callable[..., Any]], *args) -> None:
    """Call a plain or coroutine callback and await it if needed."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(timer_name: str, generation: int, duration: int) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Timer {timer_name}, Generation {generation}, Duration {duration}s",
            extra={
                'event_type': 'timer_countdown_start',
                'timer_name': timer_name,
                'generation': generation,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_update(timer_name: str, remaining_time: int, total_duration: int) -> None:
        """Log timer update events (throttled to avoid spam)."""
        # Log only at specific intervals to avoid log spam
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100 if total_duration else 100.0
            logger.debug(
                f"Timer lifecycle: UPDATE - Timer {timer_name}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'timer_update',
                    'timer_name': timer_name,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'progress_percent': progress_percent,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(timer_name: str, completion_type: str, total_duration: int) -> None:
        """Log timer completion (natural expiry or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Timer {timer_name}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'timer_completed',
                'timer_name': timer_name,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(timer_name: str, from_state: str, to_state: str, reason: str = None) -> None:
        """Log timer state transitions."""
        logger.debug(
            f"Timer lifecycle: STATE_TRANSITION - Timer {timer_name}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'timer_name': timer_name,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(timer_name: str, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Timer {timer_name}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'timer_name': timer_name,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_stale_callback(timer_name: str, generation: int, current_generation: int, callback: str) -> None:
        """Log a tick or timeout dropped because its countdown was superseded."""
        logger.warning(
            f"Timer lifecycle: STALE_CALLBACK - Timer {timer_name}: dropped {callback} from generation "
            f"{generation} (current {current_generation})",
            extra={
                'event_type': 'timer_stale_callback',
                'timer_name': timer_name,
                'generation': generation,
                'current_generation': current_generation,
                'callback': callback,
                'timestamp': time.time()
            }
        )


class CountdownTimer:
    """
    Single per-question countdown.

    At most one countdown runs at a time. Every start bumps a generation
    counter, and a tick or timeout is only delivered while its generation is
    still the current, running one.
    """

    def __init__(self, name: str = "quiz", tick_interval: float = 1.0):
        """
        Initialize the timer.

        Args:
            name: Label used in lifecycle logs
            tick_interval: Seconds between ticks
        """
        self._name = name
        self._tick_interval = tick_interval
        self._task: Optional[asyncio.Task] = None
        self._remaining_time = 0
        self._total_duration = 0
        self._generation = 0
        self._running = False

    def start(
        self,
        duration: int,
        on_tick: Optional[Callable[[int], Any]] = None,
        on_timeout: Optional[Callable[[], Any]] = None
    ) -> int:
        """
        Start a countdown, stopping any countdown already running.

        Args:
            duration: Countdown length in seconds
            on_tick: Called after each elapsed second with the remaining time
            on_timeout: Called once when the countdown reaches zero

        Returns:
            Generation number of the new countdown
        """
        if self._running:
            TimerLifecycleLogger.log_timer_state_transition(
                self._name, "running", "restarting", "start called while running"
            )
            self.stop()

        self._generation += 1
        generation = self._generation
        self._remaining_time = duration
        self._total_duration = duration
        self._running = True

        TimerLifecycleLogger.log_timer_start(self._name, generation, duration)
        self._task = asyncio.get_running_loop().create_task(
            self._countdown(generation, on_tick, on_timeout)
        )
        return generation

    def stop(self) -> bool:
        """
        Stop the countdown. Safe to call when nothing is running.

        Returns:
            True if a running countdown was stopped, False otherwise
        """
        if not self._running:
            return False

        self._running = False
        task = self._task
        self._task = None

        # A callback may stop its own countdown; the generation check ends that task.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        TimerLifecycleLogger.log_timer_completion(self._name, "stopped", self._total_duration)
        return True

    def is_current(self, generation: int) -> bool:
        """Check whether a generation belongs to the running countdown."""
        return self._running and generation == self._generation

    async def _countdown(
        self,
        generation: int,
        on_tick: Optional[Callable[[int], Any]],
        on_timeout: Optional[Callable[[], Any]]
    ) -> None:
        try:
            while self._remaining_time > 0:
                await asyncio.sleep(self._tick_interval)
                if not self.is_current(generation):
                    TimerLifecycleLogger.log_stale_callback(self._name, generation, self._generation, "tick")
                    return

                self._remaining_time -= 1
                TimerLifecycleLogger.log_timer_update(self._name, self._remaining_time, self._total_duration)
                try:
                    await _invoke(on_tick, self._remaining_time)
                except Exception as e:
                    # A failing display must not cancel the timeout
                    TimerLifecycleLogger.log_timer_error(self._name, type(e).__name__, str(e), "tick_callback")

            if not self.is_current(generation):
                TimerLifecycleLogger.log_stale_callback(self._name, generation, self._generation, "timeout")
                return

            # Stop before delivering so the callback sees an idle timer.
            self._running = False
            self._task = None
            TimerLifecycleLogger.log_timer_completion(self._name, "natural_expiry", self._total_duration)
            await _invoke(on_timeout)

        except asyncio.CancelledError:
            TimerLifecycleLogger.log_timer_state_transition(
                self._name, "cancelling", "cancelled", f"generation {generation} task cancelled"
            )
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(self._name, type(e).__name__, str(e), "countdown")
            if self.is_current(generation):
                self._running = False
                self._task = None
            raise

    @property
    def running(self) -> bool:
        """Check if a countdown is running."""
        return self._running

    @property
    def remaining_seconds(self) -> int:
        """Get remaining time in seconds."""
        return self._remaining_time

    @property
    def generation(self) -> int:
        """Generation number of the most recent start."""
        return self._generation

    @property
    def state(self) -> TimerState:
        return TimerState(remaining_seconds=self._remaining_time, running=self._running)
