"""Package provides work queues Cronify dispatches job payloads to."""

from cronify._internal.queue.abc import Queue
from cronify._internal.queue.memory import MemoryQueue
from cronify._internal.queue.sqlite import QueuedTask, SQLiteQueue

__all__ = (
    "MemoryQueue",
    "Queue",
    "QueuedTask",
    "SQLiteQueue",
)
