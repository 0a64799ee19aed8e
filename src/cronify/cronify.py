"""Cronify entrypoint."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

from typing_extensions import Self

from cronify._internal.clock import ServerClock
from cronify._internal.common.constants import DEFAULT_POLL_INTERVAL
from cronify._internal.configuration import CronifyConfiguration
from cronify._internal.exceptions import raise_app_not_started_error
from cronify._internal.queue.sqlite import SQLiteQueue
from cronify._internal.scheduler.loop import SchedulerLoop
from cronify._internal.storage.abc import call_store
from cronify._internal.storage.sqlite import SQLiteStorage
from cronify.crontab import create_crontab, next_occurrence

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from concurrent.futures import ThreadPoolExecutor
    from types import TracebackType

    from cronify._internal.common.types import (
        ErrorCallback,
        LoopFactory,
        OffsetStream,
        PollCallback,
        StopFunction,
        Timestamp,
    )
    from cronify._internal.cron_parser import CronFactory
    from cronify._internal.job import Job
    from cronify._internal.queue.abc import Queue
    from cronify._internal.storage.abc import Storage

logger = logging.getLogger("Cronify")

ReturnT = TypeVar("ReturnT")
ParamsT = ParamSpec("ParamsT")


def cache_result(f: Callable[ParamsT, ReturnT]) -> Callable[ParamsT, ReturnT]:
    """Cache the result of the first function call."""
    result: ReturnT | None = None

    @functools.wraps(f)
    def wrapper(*args: ParamsT.args, **kwargs: ParamsT.kwargs) -> ReturnT:
        nonlocal result
        if result is None:
            result = f(*args, **kwargs)
        return result

    return wrapper


class Cronify:
    """Cronify schedules cron jobs kept in a shared store.

    Job definitions live in the store, so any number of Cronify
    instances can manage and poll them. Time is read from a clock that
    follows a remote offset, which keeps instances on different machines
    in agreement about which jobs are due.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        storage: Storage | None = None,
        queue: Queue | None = None,
        clock: ServerClock | None = None,
        cron_factory: CronFactory = create_crontab,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        offset_stream: OffsetStream | None = None,
        loop_factory: LoopFactory = asyncio.get_running_loop,
        threadpool_executor: ThreadPoolExecutor | None = None,
    ) -> None:
        """Initialize a `Cronify` instance."""
        getloop = cache_result(loop_factory)

        if storage is None:
            storage = SQLiteStorage()
        if queue is None:
            queue = SQLiteQueue()

        for database in (storage, queue):
            if isinstance(database, (SQLiteStorage, SQLiteQueue)):
                database.getloop = getloop
                database.threadpool = threadpool_executor

        self.configs: CronifyConfiguration = CronifyConfiguration(
            storage=storage,
            queue=queue,
            clock=clock or ServerClock(),
            cron_factory=cron_factory,
            poll_interval=poll_interval,
            getloop=getloop,
            offset_stream=offset_stream,
        )
        self._loops: set[SchedulerLoop] = set()

    def now(self) -> Timestamp:
        """Return the server-adjusted current time in epoch milliseconds."""
        return self.configs.clock.now()

    async def add_job(
        self,
        name: str,
        pattern: str,
        data: Mapping[str, Any] | None = None,
    ) -> Job:
        """Add a cron job.

        Args:
            name: Unique name of the job, used as its key in the store.
            pattern: Six-field cron expression
                (seconds minutes hours day-of-month month day-of-week).
            data: Payload pushed onto the queue each time the job runs.

        Returns:
            The stored job.

        Raises:
            InvalidPatternError: The pattern cannot be parsed or never
                matches. Nothing is written in that case.
            StoreError: The store rejected the write.

        """
        return await self._schedule(name, pattern, data)

    async def update_job(
        self,
        name: str,
        pattern: str,
        data: Mapping[str, Any] | None = None,
    ) -> Job:
        """Replace the pattern of a job and merge new data into it.

        The next run is recomputed from the current time, so any pending
        occurrence is dropped rather than carried over.
        """
        return await self._schedule(name, pattern, data)

    async def _schedule(
        self,
        name: str,
        pattern: str,
        data: Mapping[str, Any] | None,
    ) -> Job:
        if not name:
            msg = "Job name must be a non-empty string."
            raise ValueError(msg)
        next_run = next_occurrence(
            pattern,
            self.now(),
            self.configs.cron_factory,
        )
        job = await call_store(
            "put",
            self.configs.storage.put(
                name,
                {"pattern": pattern, "next_run": next_run, "data": data or {}},
            ),
        )
        logger.debug("Job %r scheduled, next run at %s", name, next_run)
        if job is None:  # pragma: no cover
            msg = f"Store dropped a complete record for job {name!r}."
            raise RuntimeError(msg)
        return job

    async def delete_job(self, name: str) -> None:
        """Remove a job. Removing a missing job is not an error."""
        await call_store("delete", self.configs.storage.delete(name))

    async def get_job(self, name: str) -> Job | None:
        return await call_store("get", self.configs.storage.get(name))

    async def get_jobs(self) -> dict[str, Job]:
        return await call_store("get_all", self.configs.storage.get_all())

    async def waiting_jobs(self) -> dict[str, Job]:
        """Return the jobs that are due now, earliest first."""
        return await call_store(
            "range_by_next_run",
            self.configs.storage.range_by_next_run(self.now()),
        )

    def create_loop(
        self,
        on_poll: PollCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> SchedulerLoop:
        return SchedulerLoop(
            storage=self.configs.storage,
            queue=self.configs.queue,
            clock=self.configs.clock,
            cron_factory=self.configs.cron_factory,
            interval=self.configs.poll_interval,
            getloop=self.configs.getloop,
            on_poll=on_poll,
            on_error=on_error,
        )

    def run(
        self,
        on_poll: PollCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> StopFunction:
        """Start polling for due jobs.

        Must be called after `startup`, while the event loop runs. The
        first cycle runs immediately, then one more every `poll_interval`
        seconds after the previous cycle completes.

        Args:
            on_poll: Called with the due jobs at the start of each cycle.
            on_error: Called with the error that aborted a cycle.

        Returns:
            A function that stops the loop. Calling it again is a no-op.

        Raises:
            ApplicationStateError: The app has not been started.

        """
        if not self.configs.app_started:
            raise_app_not_started_error("run")
        scheduler = self.create_loop(on_poll, on_error)
        self._loops.add(scheduler)
        scheduler.start()

        def stop() -> None:
            scheduler.stop()
            self._loops.discard(scheduler)

        return stop

    async def __aenter__(self) -> Self:
        """Enter the Cronify context manager."""
        await self.startup()
        return self

    async def startup(self) -> None:
        """Open the store and the queue and start following the clock."""
        await self.configs.storage.startup()
        await self.configs.queue.startup()
        if self.configs.offset_stream is not None:
            self.configs.clock.start(self.configs.offset_stream)
        self.configs.app_started = True

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_val: BaseException | None = None,
        exc_tb: TracebackType | None = None,
    ) -> None:
        """Exit the Cronify context manager."""
        await self.shutdown()

    async def shutdown(self) -> None:
        """Stop every running loop and close the collaborators.

        Cycles already in flight are awaited so their writes complete
        before the store is closed.
        """
        self.configs.app_started = False
        loops = tuple(self._loops)
        self._loops.clear()
        for scheduler in loops:
            scheduler.stop()
        in_flight = [
            scheduler.current_task
            for scheduler in loops
            if scheduler.current_task is not None
        ]
        if in_flight:
            _ = await asyncio.gather(*in_flight, return_exceptions=True)
        await self.configs.clock.stop()
        await self.configs.queue.shutdown()
        await self.configs.storage.shutdown()
