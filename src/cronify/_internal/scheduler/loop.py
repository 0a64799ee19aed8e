from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from cronify._internal.common.constants import ONE_SECOND_MS, LoopState
from cronify._internal.exceptions import (
    BaseCronifyError,
    InvalidPatternError,
    QueueError,
)
from cronify._internal.storage.abc import call_store
from cronify.crontab import next_occurrence

if TYPE_CHECKING:
    from cronify._internal.clock import ServerClock
    from cronify._internal.common.types import (
        ErrorCallback,
        LoopFactory,
        PollCallback,
    )
    from cronify._internal.cron_parser import CronFactory
    from cronify._internal.job import Job, JobPatch
    from cronify._internal.queue.abc import Queue
    from cronify._internal.storage.abc import Storage

logger = logging.getLogger("cronify.scheduler")


class SchedulerLoop:
    """Poll the store for due jobs, dispatch them and reschedule them.

    At most one poll cycle is in flight: the next cycle is armed from the
    done callback of the previous one, `interval` seconds after it
    completes. Independent loops polling the same store are not
    coordinated, so they may both dispatch the same occurrence.
    """

    __slots__: tuple[str, ...] = (
        "_clock",
        "_cron_factory",
        "_getloop",
        "_handle",
        "_interval",
        "_on_error",
        "_on_poll",
        "_queue",
        "_state",
        "_storage",
        "_task",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        storage: Storage,
        queue: Queue,
        clock: ServerClock,
        cron_factory: CronFactory,
        interval: float,
        getloop: LoopFactory,
        on_poll: PollCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._storage: Storage = storage
        self._queue: Queue = queue
        self._clock: ServerClock = clock
        self._cron_factory: CronFactory = cron_factory
        self._interval: float = interval
        self._getloop: LoopFactory = getloop
        self._on_poll: PollCallback | None = on_poll
        self._on_error: ErrorCallback | None = on_error
        self._state: LoopState = LoopState.STOPPED
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def current_task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> None:
        if self._state is LoopState.RUNNING:
            return
        self._state = LoopState.RUNNING
        logger.info(
            "Scheduler loop started, polling every %ss",
            self._interval,
        )
        self._arm(0)

    def stop(self) -> None:
        """Halt the loop.

        A pending timer is cancelled. A cycle already in flight finishes
        its current work but does not arm another one.
        """
        if self._state is LoopState.STOPPED:
            return
        self._state = LoopState.STOPPED
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        logger.info("Scheduler loop stopped")

    def _arm(self, delay: float) -> None:
        loop = self._getloop()
        self._handle = loop.call_later(delay, self._start_cycle)

    def _start_cycle(self) -> None:
        self._handle = None
        if self._state is not LoopState.RUNNING or self._task is not None:
            return
        loop = self._getloop()
        self._task = loop.create_task(self.tick(), name="cronify-poll")
        self._task.add_done_callback(self._on_cycle_done)

    def _on_cycle_done(self, _: asyncio.Task[None]) -> None:
        self._task = None
        if self._state is LoopState.RUNNING:
            self._arm(self._interval)

    async def tick(self) -> None:
        """Run one poll cycle, reporting failures to `on_error`."""
        try:
            _ = await self.poll()
        except BaseCronifyError as exc:
            logger.warning("Poll cycle aborted: %s", exc)
            self._report(exc)
        except Exception as exc:
            logger.exception("Poll cycle failed with unexpected error")
            self._report(exc)

    def _report(self, exc: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            logger.exception("Error callback raised")

    async def poll(self) -> dict[str, Job]:
        """Dispatch every due job and persist its next occurrence.

        The occurrence instant is the due boundary plus one second, not
        the current time, so a delayed poll does not skip occurrences.
        An enqueue failure aborts the cycle before anything is persisted;
        those jobs stay due and are picked up again by the next cycle.
        A job whose stored pattern cannot be evaluated is reported to
        `on_error` and left untouched, the other due jobs still run.

        Returns:
            The dispatched jobs, advanced to their next occurrence.

        Raises:
            StoreError: Reading or writing the store failed.
            QueueError: Dispatching a payload failed.

        """
        now = self._clock.now()
        due = await call_store(
            "range_by_next_run",
            self._storage.range_by_next_run(now),
        )
        if self._on_poll is not None:
            self._on_poll(due)
        if not due:
            return due

        dispatched: dict[str, Job] = {}
        patches: dict[str, JobPatch] = {}
        for name, job in due.items():
            last_run = job.next_run + ONE_SECOND_MS
            try:
                next_run = next_occurrence(
                    job.pattern,
                    last_run,
                    self._cron_factory,
                )
            except InvalidPatternError as exc:
                logger.warning("Skipping job %r: %s", name, exc)
                self._report(exc)
                continue
            job.next_run = next_run
            job.last_run = last_run
            await self._dispatch(job)
            dispatched[name] = job
            patches[name] = {"next_run": next_run, "last_run": last_run}

        if patches:
            await call_store("put_many", self._storage.put_many(patches))
            logger.debug(
                "Dispatched %d job(s): %s",
                len(dispatched),
                list(dispatched),
            )
        return dispatched

    async def _dispatch(self, job: Job) -> None:
        try:
            await self._queue.enqueue(job.data)
        except QueueError as exc:
            if exc.job_name is not None:
                raise
            raise QueueError(exc.reason, job_name=job.name) from exc
        except Exception as exc:
            raise QueueError(str(exc), job_name=job.name) from exc
        logger.debug(
            "Job %r dispatched, next run at %s",
            job.name,
            job.next_run_at,
        )
