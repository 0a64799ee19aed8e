import asyncio
from collections.abc import AsyncIterator
from datetime import datetime, timezone

from cronify import ServerClock
from cronify._internal.clock import EPOCH, to_datetime, to_timestamp
from tests.conftest import NOW, NOW_MS, FakeTime


async def offsets(
    feed: "asyncio.Queue[float | None]",
) -> AsyncIterator[float | None]:
    while True:
        yield await feed.get()


async def wait_for_offset(clock: ServerClock, value: float) -> None:
    for _ in range(100):
        if clock.offset == value:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"offset never became {value}")


def test_time_conversion() -> None:
    assert to_datetime(0) == EPOCH
    assert to_timestamp(NOW) == NOW_MS
    assert to_datetime(NOW_MS) == NOW
    naive = datetime(2024, 1, 1, 12, 0, 0, 500000)  # noqa: DTZ001
    assert to_timestamp(naive) == NOW_MS
    assert to_datetime(NOW_MS).tzinfo is timezone.utc


def test_offset_defaults_to_zero(clock: ServerClock) -> None:
    assert clock.offset == 0
    assert clock.now() == NOW_MS


def test_set_offset(clock: ServerClock, fake_time: FakeTime) -> None:
    clock.set_offset(1500)
    assert clock.now() == NOW_MS + 1500

    clock.set_offset(None)
    assert clock.now() == NOW_MS

    fake_time.advance(2)
    assert clock.now() == NOW_MS + 2000


async def test_offset_stream_last_value_wins(clock: ServerClock) -> None:
    feed: asyncio.Queue[float | None] = asyncio.Queue()
    clock.start(offsets(feed))

    feed.put_nowait(-250)
    await wait_for_offset(clock, -250)
    assert clock.now() == NOW_MS - 250

    feed.put_nowait(100)
    feed.put_nowait(300)
    await wait_for_offset(clock, 300)
    assert clock.now() == NOW_MS + 300

    feed.put_nowait(None)
    await wait_for_offset(clock, 0)

    await clock.stop()
    await clock.stop()


async def test_failing_stream_keeps_last_offset(clock: ServerClock) -> None:
    async def broken() -> AsyncIterator[float]:
        yield 42
        raise ConnectionError

    clock.start(broken())
    await wait_for_offset(clock, 42)
    for _ in range(5):
        await asyncio.sleep(0)

    assert clock.now() == NOW_MS + 42
    await clock.stop()


async def test_clocks_are_independent(fake_time: FakeTime) -> None:
    first = ServerClock(time_func=fake_time)
    second = ServerClock(time_func=fake_time)
    first.set_offset(10)

    assert first.now() == NOW_MS + 10
    assert second.now() == NOW_MS
