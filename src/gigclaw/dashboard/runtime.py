"""Thread + queue driver for the dashboard state machine.

The runtime owns the only mutable reference to the dashboard state. Key
events, resize events, timer ticks and fetch results all enter through
:meth:`DashboardRuntime.dispatch`, which only enqueues. The host thread calls
:meth:`DashboardRuntime.process_pending` to apply queued messages one at a
time, in arrival order, and to execute the resulting commands.

Background fetches run on a single worker thread. The worker holds no
reference to the state: it calls the task source and hands an immutable
result message back through the queue. Network waits (including retry
backoff) therefore never block key handling or rendering.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Protocol

from gigclaw.dashboard.engine import (
    DEFAULT_REFRESH_INTERVAL,
    Command,
    DashboardState,
    FetchFailed,
    FetchSucceeded,
    FetchTasks,
    Message,
    Quit,
    RefreshTick,
    ScheduleRefresh,
    Viewport,
    init_commands,
    initial_state,
    update,
)
from gigclaw.dashboard.render import render
from gigclaw.errors import APIError, ErrorKind
from gigclaw.logging import get_logger
from gigclaw.models import Task

logger = get_logger(__name__)


class TaskSource(Protocol):
    """Anything that can list tasks, typically a MarketplaceClient."""

    def list_tasks(self) -> list[Task]: ...


class Timer(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[..., Timer]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class DashboardRuntime:
    """Executes dashboard commands and applies messages sequentially.

    Thread Safety:
        :meth:`dispatch` may be called from any thread. :meth:`start`,
        :meth:`process_pending` and :meth:`stop` must be called from the host
        (UI) thread only.
    """

    def __init__(
        self,
        source: TaskSource,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        viewport: Viewport | None = None,
        on_frame: Callable[[str], None] | None = None,
        executor: Executor | None = None,
        timer_factory: TimerFactory = threading.Timer,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        """Initialize the runtime.

        Args:
            source: Task source called by the fetch worker.
            refresh_interval: Seconds between a successful fetch and the next
                periodic refresh.
            viewport: Initial terminal size.
            on_frame: Called with each rendered frame.
            executor: Executor running fetches. Defaults to a single-worker
                thread pool.
            timer_factory: ``threading.Timer``-compatible factory for the
                refresh timer.
            clock: Timestamp source for successful fetches.
        """
        self._source = source
        self._refresh_interval = refresh_interval
        self._on_frame = on_frame
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="gigclaw-fetch-"
        )
        self._timer_factory = timer_factory
        self._clock = clock
        self._queue: queue.Queue[Message] = queue.Queue()
        self._state = initial_state(viewport)
        self._timer: Timer | None = None
        self._inflight: Future[None] | None = None
        self._running = False
        self._fetches_started = 0

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def fetches_started(self) -> int:
        """Number of fetches submitted to the worker since start."""
        return self._fetches_started

    @property
    def fetch_in_flight(self) -> bool:
        """Whether a submitted fetch has not finished yet."""
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> None:
        """Issue the initial fetch and emit the first frame."""
        if self._running:
            logger.warning("Dashboard runtime already started")
            return
        self._running = True
        logger.info("Dashboard started (refresh every %.0fs)", self._refresh_interval)
        self._execute(init_commands())
        self._emit_frame()

    def dispatch(self, message: Message) -> None:
        """Enqueue a message. Safe to call from any thread."""
        self._queue.put(message)

    def process_pending(self) -> int:
        """Apply every queued message in arrival order.

        Returns:
            Number of messages applied.
        """
        processed = 0
        while self._running:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                break
            self._state, commands = update(self._state, message, self._refresh_interval)
            processed += 1
            self._execute(commands)

        if processed and self._running:
            self._emit_frame()
        return processed

    def stop(self) -> None:
        """Stop the loop, cancel the refresh timer and release the worker.

        An in-flight fetch is not interrupted; its result is discarded. The
        worker ends once the task source gives up, which for a
        :class:`~gigclaw.client.MarketplaceClient` happens at its next retry
        step after the client is closed.
        """
        if not self._running:
            return
        self._running = False
        self._cancel_timer()
        if self.fetch_in_flight:
            logger.info("Abandoning in-flight fetch; it stops when the client closes")
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Dashboard stopped")

    def _emit_frame(self) -> None:
        if self._on_frame is not None:
            self._on_frame(render(self._state))

    def _execute(self, commands: list[Command]) -> None:
        for command in commands:
            match command:
                case FetchTasks():
                    self._start_fetch()
                case ScheduleRefresh(delay=delay):
                    self._arm_refresh(delay)
                case Quit():
                    self.stop()
                    return

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _start_fetch(self) -> None:
        # At most one of a fetch or a refresh timer is outstanding
        self._cancel_timer()
        self._fetches_started += 1
        logger.debug("Starting fetch #%s", self._fetches_started)
        self._inflight = self._executor.submit(self._fetch_worker)

    def _fetch_worker(self) -> None:
        """Run on the worker thread; reports back only through the queue."""
        try:
            tasks = self._source.list_tasks()
        except APIError as e:
            logger.warning("Task fetch failed: %s", e, extra={"error_kind": e.kind.value})
            self.dispatch(FetchFailed(e))
            return
        except Exception as e:
            # INTENTIONAL BROAD CATCH: a long-running dashboard must survive any
            # fetch failure; it is surfaced to the user as an unknown error.
            logger.exception("Unexpected error while fetching tasks")
            self.dispatch(FetchFailed(APIError(ErrorKind.UNKNOWN, f"unexpected error: {e}")))
            return
        self.dispatch(FetchSucceeded(tuple(tasks), self._clock()))

    def _arm_refresh(self, delay: float) -> None:
        self._cancel_timer()
        timer = self._timer_factory(delay, self.dispatch, args=(RefreshTick(),))
        timer.daemon = True
        timer.start()
        self._timer = timer

    def __enter__(self) -> DashboardRuntime:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()
