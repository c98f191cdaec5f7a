from __future__ import annotations

import concurrent.futures
import enum
import threading
from typing import Callable, Generic, TypeVar

from .shared.console import BridgeLogger

P = TypeVar("P")
R = TypeVar("R")


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    RUNNING_WITH_PENDING = "running-with-pending"


class RegenerationScheduler(Generic[P, R]):
    """
    Serializes and coalesces regeneration requests.

    At most one run is in flight. Requests arriving meanwhile collapse into a
    single follow-up run carrying the newest parameters; every handle issued
    for that follow-up settles with its outcome. A failed run rejects only
    its own handles; a queued follow-up still runs.
    """

    def __init__(
        self, run: Callable[[P], R], logger: BridgeLogger | None = None
    ) -> None:
        self._run = run
        self._logger = logger
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._state = SchedulerState.IDLE
        self._pending_params: P | None = None
        self._pending_handles: list[concurrent.futures.Future[R]] = []
        self._closed = False
        self._runs = 0
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="expose-bridge-regen"
        )

    @property
    def state(self) -> SchedulerState:
        with self._lock:
            return self._state

    @property
    def runs(self) -> int:
        """Number of runs started so far."""
        with self._lock:
            return self._runs

    def request(self, params: P) -> concurrent.futures.Future[R]:
        handle: concurrent.futures.Future[R] = concurrent.futures.Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("Scheduler is shut down")

            if self._state is SchedulerState.IDLE:
                self._state = SchedulerState.RUNNING
                self._runs += 1
                self._executor.submit(self._consume, params, [handle])
            else:
                if self._state is SchedulerState.RUNNING_WITH_PENDING:
                    self._debug("Superseding queued regeneration request")
                self._pending_params = params
                self._pending_handles.append(handle)
                self._state = SchedulerState.RUNNING_WITH_PENDING
        return handle

    def wait_idle(self, timeout: float | None = None) -> bool:
        with self._idle:
            return self._idle.wait_for(
                lambda: self._state is SchedulerState.IDLE, timeout
            )

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RegenerationScheduler[P, R]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # --- Private Helpers ---

    def _consume(
        self, params: P, handles: list[concurrent.futures.Future[R]]
    ) -> None:
        while True:
            try:
                result = self._run(params)
            except Exception as e:
                self._debug(f"Regeneration failed: {e}")
                self._settle(handles, error=e)
            else:
                self._settle(handles, result=result)

            with self._lock:
                if self._state is not SchedulerState.RUNNING_WITH_PENDING:
                    self._state = SchedulerState.IDLE
                    self._idle.notify_all()
                    return
                params = self._pending_params  # type: ignore[assignment]
                handles = self._pending_handles
                self._pending_params = None
                self._pending_handles = []
                self._state = SchedulerState.RUNNING
                self._runs += 1

    @staticmethod
    def _settle(
        handles: list[concurrent.futures.Future[R]],
        result: R | None = None,
        error: Exception | None = None,
    ) -> None:
        for handle in handles:
            # once running, a caller can no longer cancel the handle
            if not handle.set_running_or_notify_cancel():
                continue
            if error is not None:
                handle.set_exception(error)
            else:
                handle.set_result(result)  # type: ignore[arg-type]

    def _debug(self, msg: str) -> None:
        if self._logger is not None:
            self._logger.debug(msg)
