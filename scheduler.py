"""Periodic runner for the categorization cycles.

Each cycle runs on its own thread at its own cadence. A thread runs its cycle
to completion before waiting for the next tick, so a cycle never overlaps
with itself. The two threads share no in-process state; they coordinate only
through the database.
"""

import threading
from typing import Callable, List, Optional
from categorization import CategorizationOrchestrator
from logger import get_logger

logger = get_logger("scheduler")


class PeriodicTask:
    """Runs a callable every interval seconds on a daemon thread.

    Exceptions raised by the callable are logged and the task keeps running;
    the next tick is the retry.

    Args:
        name: Task name, used for the thread name and log messages.
        interval: Seconds between the end of one run and the start of the next.
        func: Callable to run.
        stop_event: Event shared by all tasks of a scheduler.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], object],
        stop_event: threading.Event,
    ):
        if interval <= 0:
            raise ValueError(f"{name}: interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.stop_event = stop_event
        self.runs = 0
        self.failures = 0
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> None:
        """Run the callable once, logging instead of raising on failure."""
        self.runs += 1
        try:
            self.func()
        except Exception:
            self.failures += 1
            logger.exception(f"Error in {self.name}")

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _loop(self) -> None:
        logger.info(f"{self.name} started (every {self.interval:g}s)")
        while not self.stop_event.is_set():
            self.run_once()
            self.stop_event.wait(self.interval)
        logger.info(f"{self.name} stopped")


class CategorizationScheduler:
    """Runs form_and_submit and poll_and_reconcile on independent cadences.

    Args:
        orchestrator: The orchestrator whose cycles are scheduled.
        submit_interval: Seconds between formation cycles.
        poll_interval: Seconds between polling cycles.
    """

    def __init__(
        self,
        orchestrator: CategorizationOrchestrator,
        submit_interval: float = 10.0,
        poll_interval: float = 30.0,
    ):
        self.stop_event = threading.Event()
        self.tasks: List[PeriodicTask] = [
            PeriodicTask(
                "request-categorization",
                submit_interval,
                orchestrator.form_and_submit,
                self.stop_event,
            ),
            PeriodicTask(
                "update-categories",
                poll_interval,
                orchestrator.poll_and_reconcile,
                self.stop_event,
            ),
        ]

    @classmethod
    def from_config(cls, config, orchestrator: CategorizationOrchestrator):
        return cls(
            orchestrator,
            submit_interval=config.submit_interval_seconds,
            poll_interval=config.poll_interval_seconds,
        )

    def start(self) -> None:
        """Start both cycle threads."""
        for task in self.tasks:
            task.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal both threads to stop and wait for in-progress cycles."""
        self.stop_event.set()
        for task in self.tasks:
            task.join(timeout)

    def run_forever(self) -> None:
        """Start the cycles and block until interrupted (Ctrl+C)."""
        self.start()
        try:
            while not self.stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted, waiting for running cycles to finish...")
        finally:
            self.stop()
