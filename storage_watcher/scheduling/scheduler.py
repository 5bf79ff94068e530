"""
Fixed-delay scheduler for repeating tasks.

Each scheduled task runs on its own daemon thread. A run starts ``delay``
seconds after the previous run returned, so at most one run of a task is in
flight at any time. Cancelling a task prevents further runs; a run that is
already executing is allowed to finish.

An exception raised by a run ends the repetition. It is logged and kept on
the task handle, which is the scheduler's error channel.
"""

import threading
from typing import Callable, List, Optional

import structlog

logger = structlog.get_logger(__name__)

Task = Callable[[], None]


class ScheduledTask:
    """Handle to a task repeating under a ``FixedDelayScheduler``."""

    def __init__(self, fn: Task, initial_delay: float, delay: float, name: str) -> None:
        self.name = name
        self._fn = fn
        self._initial_delay = initial_delay
        self._delay = delay
        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._cancelled = False
        self._thread: Optional[threading.Thread] = None
        self.exception: Optional[BaseException] = None

    def cancel(self) -> bool:
        """
        Stop future runs of the task.

        Safe to call from any thread, including from inside the task itself,
        and safe to call more than once.

        Returns:
            True if this call cancelled the task, False if it was already
            cancelled or finished
        """
        with self._lock:
            if self._cancelled or self._done_event.is_set():
                return False
            self._cancelled = True
        self._cancel_event.set()
        return True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once the task thread has exited."""
        return self._done_event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the task has finished.

        Args:
            timeout: Maximum number of seconds to wait

        Returns:
            Whether the task finished within the timeout
        """
        return self._done_event.wait(timeout)

    def _start(self) -> None:
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()

    def _run_loop(self) -> None:
        try:
            if self._cancel_event.wait(self._initial_delay):
                return
            while True:
                try:
                    self._fn()
                except Exception as e:
                    self.exception = e
                    logger.error("Scheduled task failed", task=self.name, error=str(e), exc_info=True)
                    return
                if self._cancel_event.wait(self._delay):
                    return
        finally:
            self._done_event.set()

    def __repr__(self) -> str:
        return f"<ScheduledTask name={self.name!r} cancelled={self._cancelled} done={self.done}>"


class FixedDelayScheduler:
    """Runs tasks repeatedly with a fixed delay between runs."""

    def __init__(self, max_workers: int = 4, name: str = "storage-watcher") -> None:
        """
        Initialize the scheduler.

        Args:
            max_workers: Maximum number of tasks that may be active at once
            name: Prefix for worker thread names
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.name = name
        self._lock = threading.Lock()
        self._tasks: List[ScheduledTask] = []
        self._counter = 0
        self._shutdown = False

    def schedule_with_fixed_delay(
        self, fn: Task, initial_delay: float, delay: float
    ) -> ScheduledTask:
        """
        Run ``fn`` after ``initial_delay`` seconds, then repeatedly with
        ``delay`` seconds between the end of one run and the start of the next.

        Args:
            fn: Callable taking no arguments
            initial_delay: Seconds before the first run
            delay: Seconds between runs

        Returns:
            Handle used to cancel the task

        Raises:
            ValueError: If the delays are invalid
            RuntimeError: If the scheduler is shut down or has no free worker
        """
        if initial_delay < 0:
            raise ValueError(f"initial_delay must not be negative, got {initial_delay}")
        if delay <= 0:
            raise ValueError(f"delay must be positive, got {delay}")

        with self._lock:
            if self._shutdown:
                raise RuntimeError("Cannot schedule new tasks after shutdown")
            self._tasks = [task for task in self._tasks if not task.done]
            if len(self._tasks) >= self.max_workers:
                raise RuntimeError(
                    f"Scheduler {self.name} is at capacity ({self.max_workers} active tasks)"
                )
            self._counter += 1
            task = ScheduledTask(fn, initial_delay, delay, f"{self.name}-{self._counter}")
            self._tasks.append(task)

        task._start()
        logger.debug("Task scheduled", task=task.name, initial_delay=initial_delay, delay=delay)
        return task

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for task in self._tasks if not task.done)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Cancel all tasks and refuse new ones.

        Args:
            wait: Whether to wait for running tasks to finish
            timeout: Maximum seconds to wait for each task
        """
        with self._lock:
            self._shutdown = True
            tasks = list(self._tasks)

        for task in tasks:
            task.cancel()
        if wait:
            for task in tasks:
                if task._thread is threading.current_thread():
                    continue
                task.wait(timeout)

        logger.debug("Scheduler shut down", scheduler=self.name, tasks=len(tasks))

    def __enter__(self) -> "FixedDelayScheduler":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
