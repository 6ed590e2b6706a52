"""
Periodic update loop tying fetch, compose and publish together.

Responsibility:
    This module owns the lifecycle of the status updater. It is solely responsible
    for scheduling update cycles and reporting their outcome; talking to the APIs
    is delegated to the `client` and `publisher` modules, rendering to `composer`.

Design:
    - **State Machine**: ``IDLE -> RUNNING -> STOPPED``. A stopped orchestrator
      cannot be restarted.
    - **Immediate First Cycle**: `start()` runs one cycle on the calling thread,
      then arms a daemon thread that runs a cycle every ``update_interval`` seconds.
    - **No Overlap**: A cycle is skipped if the previous one is still outstanding.
    - **Observer Events**: Listeners registered with `subscribe()` receive
      ``started``, ``stopped``, ``cycle_succeeded`` and ``cycle_failed`` events.

Key Invariants:
    - Every cycle catches its own errors; none terminates the loop.
    - The sink always receives a well-formed status. When activity data cannot be
      produced, the fallback "unavailable" status is published instead.
    - `stop()` never aborts a cycle in flight. The cycle's publish completes but its
      events are discarded.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from wakatime_profile_status.client import ActivityClient
from wakatime_profile_status.composer import StatusComposer
from wakatime_profile_status.models import FetchFailure, StatusMessage
from wakatime_profile_status.publisher import DryRunPublishClient, PublishClient, PublishFailure

if TYPE_CHECKING:
    from wakatime_profile_status.config import Config

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "EventKind",
    "OrchestratorEvent",
    "OrchestratorState",
    "StatusOrchestrator",
    "build_orchestrator",
]


class OrchestratorState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class EventKind(Enum):
    STARTED = "started"
    STOPPED = "stopped"
    CYCLE_SUCCEEDED = "cycle_succeeded"
    CYCLE_FAILED = "cycle_failed"


@dataclass(frozen=True)
class OrchestratorEvent:
    """A discrete lifecycle or cycle-outcome notification.

    Attributes:
        kind (EventKind): What happened.
        status (Optional[StatusMessage]): The status that was (or was attempted to be) published.
        error (Optional[object]): The :class:`FetchFailure` or exception behind a failed cycle.
    """

    kind: EventKind
    status: Optional[StatusMessage] = None
    error: Optional[object] = None


Listener = Callable[[OrchestratorEvent], None]


class StatusOrchestrator:
    """Run update cycles on a timer and report their outcome.

    Attributes:
        activity_client (ActivityClient): Source of activity snapshots.
        composer (StatusComposer): Renders snapshots into statuses.
        publisher (PublishClient): Sink for composed statuses.
        update_interval (float): Seconds between the end of one wait and the next cycle.

    Example:
        >>> orchestrator = build_orchestrator(load_config({}))
        >>> orchestrator.subscribe(print)
        >>> orchestrator.start()
        >>> # ...
        >>> orchestrator.stop()
    """

    def __init__(
        self,
        activity_client: ActivityClient,
        composer: StatusComposer,
        publisher: Any,
        update_interval: float = 300.0,
    ) -> None:
        if update_interval <= 0:
            raise ValueError(f"update_interval must be positive, got {update_interval}")
        self.activity_client = activity_client
        self.composer = composer
        self.publisher = publisher
        self.update_interval = update_interval

        self._state = OrchestratorState.IDLE
        self._lock = threading.Lock()
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._listeners: List[Listener] = []

        # Metrics
        self.start_time: float = 0.0
        self.cycles_run: int = 0
        self.cycles_succeeded: int = 0
        self.cycles_failed: int = 0
        self.cycles_skipped: int = 0
        self.last_cycle_time: float = 0.0
        self.last_cycle_duration: float = 0.0
        self.last_status: Optional[StatusMessage] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for events and return a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, kind: EventKind, status: Optional[StatusMessage] = None, error: Optional[object] = None) -> None:
        event = OrchestratorEvent(kind=kind, status=status, error=error)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.error("Error in event listener for %s", kind.value, exc_info=True)

    def start(self) -> None:
        """Run one cycle now, then schedule a cycle every ``update_interval`` seconds.

        Calling `start()` while running is a no-op.

        Raises:
            RuntimeError: If the orchestrator was already stopped.
        """
        with self._lock:
            if self._state is OrchestratorState.RUNNING:
                return
            if self._state is OrchestratorState.STOPPED:
                raise RuntimeError("StatusOrchestrator cannot be restarted once stopped")
            self._state = OrchestratorState.RUNNING
            self.start_time = time.monotonic()

        logger.info("Status updater started (interval: %ss).", self.update_interval)
        self._emit(EventKind.STARTED)

        self.run_cycle()

        with self._lock:
            if self._state is not OrchestratorState.RUNNING:
                return
            self._thread = threading.Thread(target=self._run, name="StatusOrchestrator", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop scheduling cycles. A cycle already in flight is allowed to finish."""
        with self._lock:
            if self._state is not OrchestratorState.RUNNING:
                return
            self._state = OrchestratorState.STOPPED
            self._stop_event.set()

        logger.info("Status updater stopped.")
        self._emit(EventKind.STOPPED)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the orchestrator is stopped or ``timeout`` elapses.

        Returns:
            bool: True if the orchestrator was stopped.
        """
        return self._stop_event.wait(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the timer thread to exit."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        while not self._stop_event.wait(self.update_interval):
            if self._state is not OrchestratorState.RUNNING:
                break
            try:
                self.run_cycle()
            except Exception:
                logger.error("Unexpected error in update loop", exc_info=True)

    def run_cycle(self) -> Optional[bool]:
        """Fetch, compose and publish one status.

        Returns:
            Optional[bool]: True if a fresh status was published, False if the cycle
            failed (the fallback status may still have been published), None if the
            cycle was skipped because the previous one is still running.
        """
        if not self._cycle_lock.acquire(blocking=False):
            with self._lock:
                self.cycles_skipped += 1
            logger.warning("Previous update cycle still running; skipping this one.")
            return None
        try:
            return self._run_cycle_locked()
        finally:
            self._cycle_lock.release()

    def _run_cycle_locked(self) -> bool:
        cycle_start = time.monotonic()
        error: Optional[object] = None

        try:
            result = self.activity_client.fetch()
            status = self.composer.compose(result)
            if isinstance(result, FetchFailure):
                logger.warning("Activity data unavailable (%s); publishing fallback status.", result)
                error = result
        except Exception as e:
            logger.error("Error preparing status: %s", e, exc_info=True)
            error = e
            status = self.composer.fallback()

        try:
            self.publisher.publish(status)
        except PublishFailure as e:
            logger.error("Failed to publish status: %s", e)
            error = e
        except Exception as e:
            logger.error("Unexpected error publishing status: %s", e, exc_info=True)
            error = e

        succeeded = error is None
        with self._lock:
            self.cycles_run += 1
            if succeeded:
                self.cycles_succeeded += 1
                self.last_status = status
            else:
                self.cycles_failed += 1
                self.last_error = str(error)
            self.last_cycle_time = time.monotonic()
            self.last_cycle_duration = self.last_cycle_time - cycle_start
            stopped = self._state is OrchestratorState.STOPPED

        if stopped:
            logger.debug("Orchestrator stopped during cycle; discarding its result.")
            return succeeded

        if succeeded:
            self._emit(EventKind.CYCLE_SUCCEEDED, status=status)
        else:
            self._emit(EventKind.CYCLE_FAILED, status=status, error=error)
        return succeeded

    def get_statistics(self) -> Dict[str, Any]:
        """Return usage statistics.

        Returns:
            Dict[str, Any]: Cycle counters, the last published status and uptime.
        """
        with self._lock:
            return {
                "state": self._state.value,
                "cycles_run": self.cycles_run,
                "cycles_succeeded": self.cycles_succeeded,
                "cycles_failed": self.cycles_failed,
                "cycles_skipped": self.cycles_skipped,
                "last_cycle_time": self.last_cycle_time,
                "last_cycle_duration": self.last_cycle_duration,
                "last_status": self.last_status.text if self.last_status else None,
                "last_error": self.last_error,
                "uptime": time.monotonic() - self.start_time if self.start_time else 0.0,
            }

    def close(self) -> None:
        """Stop, let a cycle in flight finish, and release the clients.

        Blocks until the running cycle (including any rate-limit backoff) has
        published; the clients are closed only after that.
        """
        self.stop()
        self.join(timeout=1.0)
        with self._cycle_lock:
            for component in (self.activity_client, self.publisher):
                close = getattr(component, "close", None)
                if close is None:
                    continue
                try:
                    close()
                except Exception as e:
                    logger.error("Error closing %r: %s", component, e)

    def __repr__(self) -> str:
        return f"<StatusOrchestrator state={self._state.value} interval={self.update_interval}>"


def build_orchestrator(config: Config) -> StatusOrchestrator:
    """Wire the concrete clients described by ``config`` into an orchestrator."""
    activity_client = ActivityClient(
        config.wakatime_api_key,
        base_url=config.base_url,
        retry_attempts=config.retry_attempts,
        activity_window=config.activity_window,
        timeout=config.request_timeout,
    )
    composer = StatusComposer(config.render_config())
    publisher: Any
    if config.testing:
        publisher = DryRunPublishClient()
    else:
        publisher = PublishClient(
            config.github_token,
            status_url=config.status_url,
            timeout=config.request_timeout,
        )
    return StatusOrchestrator(activity_client, composer, publisher, update_interval=config.update_interval)
