from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from cronify import Cronify, ServerClock
from cronify._internal.clock import to_timestamp
from cronify.queue import MemoryQueue
from cronify.storage import MemoryStorage

# 2024-01-01 was a Monday.
NOW = datetime(2024, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)
NOW_MS = to_timestamp(NOW)


class FakeTime:
    def __init__(self, value: float) -> None:
        self.value = value

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeHandle:
    def __init__(
        self,
        delay: float,
        callback: Callable[..., Any],
        args: tuple[Any, ...],
    ) -> None:
        self.delay = delay
        self.callback = callback
        self.args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class FakeTimerLoop:
    """Records timers instead of arming them, tasks run on a real loop."""

    def __init__(self) -> None:
        self.timers: list[FakeHandle] = []

    def call_later(
        self,
        delay: float,
        callback: Callable[..., Any],
        *args: Any,  # noqa: ANN401
    ) -> FakeHandle:
        handle = FakeHandle(delay, callback, args)
        self.timers.append(handle)
        return handle

    def create_task(
        self,
        coro: Any,  # noqa: ANN401
        *,
        name: str | None = None,
    ) -> asyncio.Task[Any]:
        return asyncio.get_running_loop().create_task(coro, name=name)

    def fire(self) -> None:
        handle = self.timers.pop(0)
        assert not handle.cancelled()
        handle.callback(*handle.args)


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime(NOW.timestamp())


@pytest.fixture
def clock(fake_time: FakeTime) -> ServerClock:
    return ServerClock(time_func=fake_time)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def queue() -> MemoryQueue:
    return MemoryQueue()


def create_app(
    *,
    clock: ServerClock | None = None,
    storage: Any = None,  # noqa: ANN401
    queue: Any = None,  # noqa: ANN401
    poll_interval: float = 0.01,
    **kwargs: Any,  # noqa: ANN401
) -> Cronify:
    return Cronify(
        storage=storage if storage is not None else MemoryStorage(),
        queue=queue if queue is not None else MemoryQueue(),
        clock=clock,
        poll_interval=poll_interval,
        **kwargs,
    )
