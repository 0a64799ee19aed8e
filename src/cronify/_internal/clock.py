from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable

    from cronify._internal.common.types import OffsetStream, Timestamp

EPOCH: Final = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS: Final = timedelta(milliseconds=1)

logger = logging.getLogger("cronify.clock")


def to_datetime(ts: Timestamp) -> datetime:
    return EPOCH + timedelta(milliseconds=ts)


def to_timestamp(dt: datetime) -> Timestamp:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // _ONE_MS


class ServerClock:
    """Wall clock corrected by the offset reported by a remote authority.

    The offset is read from the most recently observed value and is zero
    until the first observation arrives. Reading the time never blocks
    and never fails, a stale offset only costs precision.
    """

    __slots__: tuple[str, ...] = ("_offset", "_task", "_time_func")

    def __init__(self, time_func: Callable[[], float] = time.time) -> None:
        self._time_func: Callable[[], float] = time_func
        self._offset: float = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def offset(self) -> float:
        return self._offset

    def set_offset(self, value: float | None) -> None:
        self._offset = value or 0

    def now(self) -> Timestamp:
        return int(self._time_func() * 1000 + self._offset)

    def start(self, offset_stream: OffsetStream) -> None:
        """Follow `offset_stream` in the background, last value wins."""
        if self._task is not None and not self._task.done():
            _ = self._task.cancel()
        self._task = asyncio.create_task(
            self._follow(offset_stream),
            name="cronify-clock-offset",
        )

    async def _follow(self, offset_stream: OffsetStream) -> None:
        try:
            async for value in offset_stream:
                self.set_offset(value)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning(
                "Clock offset stream failed, keeping offset %s ms",
                self._offset,
                exc_info=True,
            )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        _ = task.cancel()
        _ = await asyncio.gather(task, return_exceptions=True)
