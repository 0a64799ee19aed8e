from __future__ import annotations

from typing import TYPE_CHECKING, Any, NamedTuple

from typing_extensions import override

from cronify._internal.common.constants import (
    DEFAULT_DATABASE,
    DEFAULT_TASKS_TABLE,
)
from cronify._internal.common.sqlite import SQLiteDatabase
from cronify._internal.exceptions import QueueError
from cronify._internal.queue.abc import Queue
from cronify._internal.serializers.json import JSONSerializer

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Sequence
    from pathlib import Path

    from cronify._internal.common.types import Payload
    from cronify._internal.serializers.base import Serializer

CREATE_TASKS_TABLE_QUERY = """
CREATE TABLE IF NOT EXISTS {} (
    task_id INTEGER PRIMARY KEY AUTOINCREMENT,
    payload BLOB NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

INSERT_TASK_QUERY = """
INSERT INTO {} (payload) VALUES (?);
"""

SELECT_TASKS_QUERY = """
SELECT task_id, payload
FROM {}
ORDER BY task_id;
"""

DELETE_TASK_QUERY = """
DELETE FROM {} WHERE task_id = ?;
"""


class QueuedTask(NamedTuple):
    task_id: int
    payload: dict[str, Any]


class SQLiteQueue(SQLiteDatabase, Queue):
    """Append-only task table read by an external consumer."""

    def __init__(
        self,
        database: str | Path = DEFAULT_DATABASE,
        *,
        table_name: str = DEFAULT_TASKS_TABLE,
        timeout: float = 20.0,
        serializer: Serializer | None = None,
    ) -> None:
        super().__init__(database, table_name=table_name, timeout=timeout)
        self.serializer: Serializer = serializer or JSONSerializer()
        self.insert_task_query: str = INSERT_TASK_QUERY.format(table_name)
        self.select_tasks_query: str = SELECT_TASKS_QUERY.format(table_name)
        self.delete_task_query: str = DELETE_TASK_QUERY.format(table_name)

    @override
    def _schema(self) -> Sequence[str]:
        return (CREATE_TASKS_TABLE_QUERY.format(self.table_name),)

    @override
    def _error(self, operation: str, exc: sqlite3.Error) -> QueueError:
        return QueueError(f"{operation}: {exc}")

    @override
    async def enqueue(self, payload: Payload) -> None:
        raw = self.serializer.dumpb(dict(payload))

        def insert() -> None:
            with self.conn as conn:
                _ = conn.execute(self.insert_task_query, (raw,))

        return await self._to_thread("enqueue", insert)

    async def get_tasks(self) -> list[QueuedTask]:
        def get() -> list[QueuedTask]:
            cursor = self.conn.execute(self.select_tasks_query)
            return [
                QueuedTask(
                    task_id=row[0],
                    payload=self.serializer.loadb(row[1]),
                )
                for row in cursor.fetchall()
            ]

        return await self._to_thread("get_tasks", get)

    async def delete_task(self, task_id: int) -> None:
        def delete() -> None:
            with self.conn as conn:
                _ = conn.execute(self.delete_task_query, (task_id,))

        return await self._to_thread("delete_task", delete)
