from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from cronify.exceptions import QueueError
from cronify.queue import MemoryQueue, QueuedTask, SQLiteQueue


@pytest.fixture
async def sqlite_queue(tmp_path: Path) -> AsyncIterator[SQLiteQueue]:
    queue = SQLiteQueue(tmp_path / "tasks.db", table_name="test_tasks")
    await queue.startup()

    yield queue

    await queue.shutdown()


async def test_memory_queue() -> None:
    queue = MemoryQueue()
    payload = {"k": [1]}

    await queue.enqueue(payload)
    payload["k"].append(2)

    assert queue.tasks == [{"k": [1]}]


async def test_sqlite_queue(sqlite_queue: SQLiteQueue) -> None:
    await sqlite_queue.enqueue({"foo": "bar"})
    await sqlite_queue.enqueue({})

    tasks = await sqlite_queue.get_tasks()
    assert [task.payload for task in tasks] == [{"foo": "bar"}, {}]
    assert all(isinstance(task, QueuedTask) for task in tasks)

    await sqlite_queue.delete_task(tasks[0].task_id)
    assert await sqlite_queue.get_tasks() == [tasks[1]]


async def test_sqlite_queue_errors(sqlite_queue: SQLiteQueue) -> None:
    _ = sqlite_queue.conn.execute("DROP TABLE test_tasks;")

    with pytest.raises(QueueError, match="enqueue"):
        await sqlite_queue.enqueue({"foo": "bar"})
