"""
Polling watcher for a single stored object.

Object stores have no push notifications, so ``ObjectWatcher`` polls the
object's metadata on a fixed delay and turns differences between two
snapshots into created, modified and deleted events for a listener.

Lifecycle::

    CREATED --start()--> STARTED --(stop condition | listener STOP | stop())--> STOPPED

Usage::

    def on_change(kind, watcher):
        print(kind, watcher.last_metadata)
        return ListenerResult.CONTINUE

    with FixedDelayScheduler() as scheduler:
        watcher = (
            ObjectWatcher(create_watchable("s3://bucket/report.csv"), on_change)
            .with_max_running_time(10, TimeUnit.MINUTES)
            .start(scheduler, 5, TimeUnit.SECONDS)
        )

Whatever ends the watch, the watchable is released exactly once.
"""

import threading
import time
from enum import Enum
from typing import Any, Callable, List, Optional, Union

import structlog

from storage_watcher.core.exceptions import ObjectNotFoundError, WatcherStateError
from storage_watcher.scheduling.scheduler import FixedDelayScheduler, ScheduledTask
from storage_watcher.utils.metrics import WATCHER_EVENTS, WATCHER_STOPS, WATCHER_TICKS
from storage_watcher.watchables.base import BaseWatchable, ObjectMetadata

logger = structlog.get_logger(__name__)


class WatchEventKind(str, Enum):
    """Kind of change detected between two metadata snapshots."""
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class ListenerResult(Enum):
    """Value a listener returns to keep watching or to end the watch."""
    CONTINUE = "continue"
    STOP = "stop"


class WatcherState(str, Enum):
    """Lifecycle state of a watcher."""
    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class TimeUnit(Enum):
    """Time units accepted for intervals and running time limits."""
    MILLISECONDS = 0.001
    SECONDS = 1.0
    MINUTES = 60.0

    def to_seconds(self, value: float) -> float:
        return value * self.value

    def to_millis(self, value: float) -> float:
        return value * self.value * 1000


Listener = Callable[[WatchEventKind, "ObjectWatcher"], Union[ListenerResult, bool, None]]
StopCondition = Callable[["ObjectWatcher"], bool]


def classify_change(
    previous: Optional[ObjectMetadata], current: Optional[ObjectMetadata]
) -> Optional[WatchEventKind]:
    """
    Classify the transition between two metadata snapshots.

    ``None`` stands for an absent object. Only the etag is compared, so a
    change of timestamp or metadata alone is not a modification.

    Args:
        previous: Snapshot from the previous check
        current: Snapshot from this check

    Returns:
        The event kind, or None if nothing changed
    """
    if previous is None:
        return WatchEventKind.CREATED if current is not None else None
    if current is None:
        return WatchEventKind.DELETED
    if previous.etag != current.etag:
        return WatchEventKind.MODIFIED
    return None


def _is_stop(result: Any) -> bool:
    # Only an explicit STOP or False ends the watch; None and other values continue
    return result is ListenerResult.STOP or result is False


class ObjectWatcher:
    """Watches one object and reports changes to a listener."""

    def __init__(self, watchable: BaseWatchable, listener: Listener) -> None:
        """
        Initialize the watcher.

        Args:
            watchable: Object to watch; released when the watch ends
            listener: Called as ``listener(kind, watcher)`` for each change
        """
        self._watchable = watchable
        self._listener = listener

        # Guards everything below that is read from more than one thread
        self._lock = threading.Lock()
        self._stop_conditions: List[StopCondition] = []
        self._state = WatcherState.CREATED
        self._task: Optional[ScheduledTask] = None
        self._start_time: Optional[float] = None
        self._stop_time: Optional[float] = None
        self._run_counter = 0
        self._stop_reason: Optional[str] = None

        # Written only by start() and by ticks, which never overlap
        self._last_metadata: Optional[ObjectMetadata] = None

        self._log = logger.bind(uri=watchable.uri)

    # Configuration

    def add_stop_condition(self, condition: StopCondition) -> "ObjectWatcher":
        """
        Register a condition that ends the watch when it returns True.

        Conditions are combined with OR and checked at the start of every
        tick, so conditions added after ``start`` apply from the next tick.

        Args:
            condition: Predicate called with this watcher

        Returns:
            This watcher
        """
        with self._lock:
            self._stop_conditions.append(condition)
        return self

    def with_max_running_time(
        self, max_time: float, unit: TimeUnit = TimeUnit.MILLISECONDS
    ) -> "ObjectWatcher":
        """Stop once ``elapsed()`` reaches ``max_time``."""
        if max_time < 0:
            raise ValueError(f"max_time must not be negative, got {max_time}")
        limit_ms = unit.to_millis(max_time)
        return self.add_stop_condition(lambda watcher: watcher.elapsed() >= limit_ms)

    def with_max_running_count(self, max_count: int) -> "ObjectWatcher":
        """Stop once ``run_count()`` reaches ``max_count``."""
        if max_count < 0:
            raise ValueError(f"max_count must not be negative, got {max_count}")
        return self.add_stop_condition(lambda watcher: watcher.run_count() >= max_count)

    # Lifecycle

    def start(
        self,
        scheduler: FixedDelayScheduler,
        interval: float,
        unit: TimeUnit = TimeUnit.MILLISECONDS,
    ) -> "ObjectWatcher":
        """
        Take a baseline snapshot and begin polling.

        The baseline is fetched before the first tick so an object that
        already exists is not reported as created.

        Args:
            scheduler: Scheduler providing ``schedule_with_fixed_delay``
            interval: Delay between checks
            unit: Unit of ``interval``

        Returns:
            This watcher

        Raises:
            ValueError: If the interval is not positive
            WatcherStateError: If the watcher was already started
            StorageAccessError: If the baseline cannot be read
        """
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        with self._lock:
            if self._state is not WatcherState.CREATED:
                raise WatcherStateError("start", self._state.value)
            self._state = WatcherState.STARTED

        try:
            self._last_metadata = self._fetch_metadata_or_absent()
            with self._lock:
                self._start_time = time.monotonic()
            task = scheduler.schedule_with_fixed_delay(self.run, 0, unit.to_seconds(interval))
        except Exception:
            # Nothing is scheduled, so the watcher may be started again
            with self._lock:
                if self._state is WatcherState.STARTED:
                    self._state = WatcherState.CREATED
                    self._start_time = None
            raise

        with self._lock:
            self._task = task
            stopped_meanwhile = self._state is WatcherState.STOPPED
        if stopped_meanwhile:
            # stop() ran before the handle was stored and could not cancel it
            task.cancel()
            return self

        self._log.info(
            "Watcher started",
            interval_seconds=unit.to_seconds(interval),
            exists=self._last_metadata is not None,
        )
        return self

    def stop(self) -> "ObjectWatcher":
        """
        Cancel polling and release the watchable.

        Callable from any thread, including from inside the listener.
        Stopping a stopped watcher does nothing.

        Returns:
            This watcher

        Raises:
            WatcherStateError: If the watcher was never started
        """
        with self._lock:
            state = self._state
        if state is WatcherState.CREATED:
            raise WatcherStateError("stop", state.value)
        self._terminate("stopped")
        return self

    def run(self) -> None:
        """Perform one check. Called by the scheduler."""
        if self.state is WatcherState.STOPPED:
            return

        if self._should_stop():
            self._terminate("stop_condition")
            return

        with self._lock:
            self._run_counter += 1
            run_count = self._run_counter
        WATCHER_TICKS.labels(uri=self._watchable.uri).inc()

        previous = self._last_metadata
        try:
            self._last_metadata = self._fetch_metadata_or_absent()
        except Exception as e:
            # The scheduler ends the repetition on this error, so stop here too
            self._log.error("Metadata fetch failed", run_count=run_count, error=str(e))
            self._terminate("store_error")
            raise

        kind = classify_change(previous, self._last_metadata)
        if kind is None:
            return

        self._log.info("Change detected", event=kind.value, run_count=run_count)
        WATCHER_EVENTS.labels(uri=self._watchable.uri, event=kind.value).inc()

        try:
            result = self._listener(kind, self)
        except Exception as e:
            self._log.error("Listener failed", event=kind.value, error=str(e))
            self._terminate("listener_error")
            raise

        if _is_stop(result):
            self._terminate("listener")

    # Observable state

    def elapsed(self) -> float:
        """
        Milliseconds since ``start``, frozen once the watcher stops.

        Raises:
            WatcherStateError: If the watcher was never started
        """
        with self._lock:
            if self._start_time is None:
                raise WatcherStateError("measure elapsed time of", self._state.value)
            end = self._stop_time if self._stop_time is not None else time.monotonic()
            return (end - self._start_time) * 1000

    def run_count(self) -> int:
        """Number of ticks that passed the stop check."""
        with self._lock:
            return self._run_counter

    @property
    def watchable(self) -> BaseWatchable:
        return self._watchable

    @property
    def task(self) -> Optional[ScheduledTask]:
        """Handle of the scheduled polling task, None before ``start``."""
        with self._lock:
            return self._task

    @property
    def last_metadata(self) -> Optional[ObjectMetadata]:
        """Snapshot from the latest check, None if the object was absent."""
        return self._last_metadata

    @property
    def state(self) -> WatcherState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is WatcherState.STARTED

    @property
    def stop_reason(self) -> Optional[str]:
        """Why the watcher stopped: stopped, stop_condition, listener, listener_error or store_error."""
        with self._lock:
            return self._stop_reason

    # Internals

    def _should_stop(self) -> bool:
        with self._lock:
            conditions = list(self._stop_conditions)
        # Conditions read elapsed()/run_count(), which take the lock themselves
        return any(condition(self) for condition in conditions)

    def _fetch_metadata_or_absent(self) -> Optional[ObjectMetadata]:
        try:
            return self._watchable.fetch_metadata()
        except ObjectNotFoundError:
            return None

    def _terminate(self, reason: str) -> bool:
        """
        Cancel the task and release the watchable, once.

        Returns:
            True if this call performed the termination
        """
        with self._lock:
            if self._state is WatcherState.STOPPED:
                return False
            self._state = WatcherState.STOPPED
            self._stop_reason = reason
            if self._start_time is not None:
                self._stop_time = time.monotonic()
            task = self._task

        try:
            if task is not None:
                task.cancel()
        finally:
            self._watchable.release()
            WATCHER_STOPS.labels(uri=self._watchable.uri, reason=reason).inc()
            self._log.info("Watcher stopped", reason=reason, run_count=self.run_count())
        return True

    def __repr__(self) -> str:
        return f"<ObjectWatcher uri={self._watchable.uri!r} state={self.state.value}>"
