from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from typing_extensions import override

from cronify._internal.common.constants import (
    DEFAULT_DATABASE,
    DEFAULT_JOBS_TABLE,
)
from cronify._internal.common.sqlite import SQLiteDatabase
from cronify._internal.exceptions import StoreError
from cronify._internal.job import Job, apply_patch
from cronify._internal.serializers.json import JSONSerializer
from cronify._internal.storage.abc import Storage

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from cronify._internal.common.types import Timestamp
    from cronify._internal.job import JobPatch
    from cronify._internal.serializers.base import Serializer

CREATE_JOBS_TABLE_QUERY = """
CREATE TABLE IF NOT EXISTS {} (
    name TEXT PRIMARY KEY,
    pattern TEXT NOT NULL,
    next_run INTEGER NOT NULL,
    last_run INTEGER,
    data BLOB NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

CREATE_NEXT_RUN_INDEX_QUERY = """
CREATE INDEX IF NOT EXISTS {0}_next_run_idx ON {0} (next_run);
"""

SELECT_JOB_QUERY = """
SELECT name, pattern, next_run, last_run, data
FROM {}
WHERE name = ?;
"""

SELECT_JOBS_QUERY = """
SELECT name, pattern, next_run, last_run, data
FROM {}
ORDER BY name;
"""

SELECT_DUE_JOBS_QUERY = """
SELECT name, pattern, next_run, last_run, data
FROM {}
WHERE next_run <= ?
ORDER BY next_run, name;
"""

UPSERT_JOB_QUERY = """
INSERT INTO {} (name, pattern, next_run, last_run, data)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (name) DO UPDATE SET
    pattern = EXCLUDED.pattern,
    next_run = EXCLUDED.next_run,
    last_run = EXCLUDED.last_run,
    data = EXCLUDED.data,
    updated_at = CURRENT_TIMESTAMP;
"""

DELETE_JOB_QUERY = """
DELETE FROM {} WHERE name = ?;
"""

logger = logging.getLogger("cronify.storage")


class SQLiteStorage(SQLiteDatabase, Storage):
    def __init__(
        self,
        database: str | Path = DEFAULT_DATABASE,
        *,
        table_name: str = DEFAULT_JOBS_TABLE,
        timeout: float = 20.0,
        serializer: Serializer | None = None,
    ) -> None:
        super().__init__(database, table_name=table_name, timeout=timeout)
        self.serializer: Serializer = serializer or JSONSerializer()
        self.select_job_query: str = SELECT_JOB_QUERY.format(table_name)
        self.select_jobs_query: str = SELECT_JOBS_QUERY.format(table_name)
        self.select_due_jobs_query: str = SELECT_DUE_JOBS_QUERY.format(
            table_name,
        )
        self.upsert_job_query: str = UPSERT_JOB_QUERY.format(table_name)
        self.delete_job_query: str = DELETE_JOB_QUERY.format(table_name)

    @override
    def _schema(self) -> Sequence[str]:
        return (
            CREATE_JOBS_TABLE_QUERY.format(self.table_name),
            CREATE_NEXT_RUN_INDEX_QUERY.format(self.table_name),
        )

    @override
    def _error(self, operation: str, exc: sqlite3.Error) -> StoreError:
        return StoreError(operation, str(exc))

    def _to_job(self, row: tuple[Any, ...]) -> Job:
        return Job(
            name=row[0],
            pattern=row[1],
            next_run=row[2],
            last_run=row[3],
            data=self.serializer.loadb(row[4]),
        )

    def _select_job(self, conn: sqlite3.Connection, name: str) -> Job | None:
        row = conn.execute(self.select_job_query, (name,)).fetchone()
        return None if row is None else self._to_job(row)

    def _merge(
        self,
        conn: sqlite3.Connection,
        name: str,
        patch: JobPatch,
        operation: str,
    ) -> Job | None:
        job = apply_patch(name, self._select_job(conn, name), patch)
        if job is None:
            logger.debug("Dropping update for missing job %r", name)
            return None
        try:
            raw_data = self.serializer.dumpb(job.data)
        except (TypeError, ValueError) as exc:
            reason = f"cannot serialize data of job {name!r}: {exc}"
            raise StoreError(operation, reason) from exc
        _ = conn.execute(
            self.upsert_job_query,
            (job.name, job.pattern, job.next_run, job.last_run, raw_data),
        )
        return job

    @override
    async def get(self, name: str) -> Job | None:
        return await self._to_thread(
            "get",
            lambda: self._select_job(self.conn, name),
        )

    @override
    async def get_all(self) -> dict[str, Job]:
        def get_all() -> dict[str, Job]:
            cursor = self.conn.execute(self.select_jobs_query)
            return {row[0]: self._to_job(row) for row in cursor.fetchall()}

        return await self._to_thread("get_all", get_all)

    @override
    async def range_by_next_run(self, now: Timestamp) -> dict[str, Job]:
        def get_due() -> dict[str, Job]:
            cursor = self.conn.execute(self.select_due_jobs_query, (now,))
            return {row[0]: self._to_job(row) for row in cursor.fetchall()}

        return await self._to_thread("range_by_next_run", get_due)

    @override
    async def put(self, name: str, patch: JobPatch) -> Job | None:
        def put() -> Job | None:
            with self.conn as conn:
                _ = conn.execute("BEGIN IMMEDIATE;")
                return self._merge(conn, name, patch, "put")

        return await self._to_thread("put", put)

    @override
    async def put_many(self, patches: Mapping[str, JobPatch]) -> None:
        if not patches:
            return None

        def put_many() -> None:
            with self.conn as conn:
                _ = conn.execute("BEGIN IMMEDIATE;")
                for name, patch in patches.items():
                    _ = self._merge(conn, name, patch, "put_many")

        return await self._to_thread("put_many", put_many)

    @override
    async def delete(self, name: str) -> None:
        def delete() -> None:
            with self.conn as conn:
                _ = conn.execute(self.delete_job_query, (name,))

        return await self._to_thread("delete", delete)
