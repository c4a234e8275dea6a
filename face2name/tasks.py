"""
face2name.tasks
===============
One-shot background queries.

An AsyncQuery runs a zero-argument operation on a worker pool and hands
the outcome back to the thread that owns a CallbackLoop. Exactly one of
on_success / on_error fires per query, on that thread, followed by
on_complete.

Success and failure are tagged explicitly (Success / Failure), so a query
that legitimately returns None, 0 or [] still counts as a success.

Usage:
    loop = CallbackLoop()                      # owned by this thread
    pool = ThreadPoolExecutor(max_workers=4)

    class Show(QueryCallbacks):
        def on_success(self, result):
            print("found", result)

    q = AsyncQuery(lambda: repo.fetch(Identity(42)), pool, loop, Show())
    q.execute()
    ...
    loop.run_pending()                          # callbacks fire here
"""

import queue
import threading
import time
from concurrent.futures import CancelledError, Executor, Future
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from .log import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    ok = True


@dataclass(frozen=True)
class Failure:
    error: BaseException
    ok = False


Outcome = Union[Success, Failure]


class QueryCallbacks(Generic[T]):
    """Override on_success / on_error to handle a query's outcome."""

    def on_success(self, result: T):
        pass

    def on_error(self, error: BaseException):
        log.error("query failed", error=repr(error), exc_info=error)


class CallbackLoop:
    """
    Queue of callables that run on the thread which created the loop.
    post() is safe from any thread; run_pending() only from the owner.
    """

    def __init__(self):
        self._queue: "queue.Queue[tuple]" = queue.Queue()
        self._owner = threading.get_ident()

    def owner_is_current(self) -> bool:
        return threading.get_ident() == self._owner

    def post(self, fn: Callable, *args: Any):
        self._queue.put((fn, args))

    def run_pending(self, timeout: Optional[float] = None) -> int:
        """
        Run everything queued so far and return how many ran.
        With a timeout, wait up to that long for the first item.
        """
        if not self.owner_is_current():
            raise RuntimeError("CallbackLoop polled from a thread that does not own it")

        ran = 0
        if timeout is not None:
            try:
                fn, args = self._queue.get(timeout=max(0.0, timeout))
            except queue.Empty:
                return 0
            fn(*args)
            ran += 1
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return ran
            fn(*args)
            ran += 1


class AsyncQuery(Generic[T]):
    """
    Single-shot background task. Subclass and override on_start /
    on_complete for lifecycle hooks; both run on the loop's thread.
    """

    POLL_INTERVAL_S = 0.05

    def __init__(self, operation: Callable[[], T], executor: Executor,
                 loop: CallbackLoop,
                 callbacks: Optional[QueryCallbacks] = None):
        self._operation = operation
        self._executor  = executor
        self._loop      = loop
        self._callbacks = callbacks if callbacks is not None else QueryCallbacks()
        self._lock      = threading.Lock()
        self._started   = False
        self._outcome: Optional[Outcome] = None
        self._delivered = threading.Event()

    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------

    def on_start(self):
        pass

    def on_complete(self):
        pass

    # ------------------------------------------------------------------

    def execute(self) -> "AsyncQuery[T]":
        with self._lock:
            if self._started:
                raise RuntimeError("query has already been executed")
            self._started = True
        self.on_start()
        future = self._executor.submit(self._run)
        future.add_done_callback(self._post)
        return self

    def _run(self) -> Outcome:
        # worker thread
        try:
            return Success(self._operation())
        except Exception as e:
            return Failure(e)

    def _post(self, future: Future):
        if future.cancelled():
            outcome = Failure(CancelledError())
        elif future.exception() is not None:
            outcome = Failure(future.exception())
        else:
            outcome = future.result()
        self._loop.post(self._deliver, outcome)

    def _deliver(self, outcome: Outcome):
        # loop thread
        self._outcome = outcome
        try:
            if outcome.ok:
                self._callbacks.on_success(outcome.value)
            else:
                self._callbacks.on_error(outcome.error)
        finally:
            try:
                self.on_complete()
            finally:
                self._delivered.set()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def done(self) -> bool:
        return self._delivered.is_set()

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome if self.done else None

    def wait(self, timeout: Optional[float] = None) -> Outcome:
        """
        Block until the outcome has been delivered. On the loop's own
        thread this pumps the loop, so other queries' callbacks may run too.
        """
        if not self._started:
            raise RuntimeError("query has not been executed")

        if not self._loop.owner_is_current():
            if not self._delivered.wait(timeout):
                raise TimeoutError("query did not complete in time")
            return self._outcome

        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._delivered.is_set():
            step = self.POLL_INTERVAL_S
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError("query did not complete in time")
                step = min(step, remaining)
            self._loop.run_pending(timeout=step)
        return self._outcome

    def result(self, timeout: Optional[float] = None) -> T:
        """Return the operation's value, or re-raise its error."""
        outcome = self.wait(timeout)
        if outcome.ok:
            return outcome.value
        raise outcome.error
