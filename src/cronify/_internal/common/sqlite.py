from __future__ import annotations

import asyncio
import re
import sqlite3
import threading
from abc import ABCMeta, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from concurrent.futures import ThreadPoolExecutor

    from cronify._internal.common.types import LoopFactory
    from cronify._internal.exceptions import BaseCronifyError

ReturnT = TypeVar("ReturnT")


def validate_table_name(table_name: str) -> None:
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", table_name):
        msg = (
            f"Invalid table name: {table_name!r}. "
            f"Must contain only letters, digits, and underscores."
        )
        raise ValueError(msg)


class SQLiteDatabase(metaclass=ABCMeta):
    """Connection handling shared by the SQLite store and queue.

    Blocking calls run in `threadpool` behind a lock, and any
    `sqlite3.Error` is re-raised through `_error`.
    """

    def __init__(
        self,
        database: str | Path,
        *,
        table_name: str,
        timeout: float = 20.0,
    ) -> None:
        validate_table_name(table_name)
        self.database: Path = (
            Path(database) if isinstance(database, str) else database
        )
        self.table_name: str = table_name
        self.timeout: float = timeout
        self.getloop: LoopFactory = asyncio.get_running_loop
        self.threadpool: ThreadPoolExecutor | None = None
        self._conn: sqlite3.Connection | None = None
        self._lock: threading.Lock = threading.Lock()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            msg = "Database not initialized. Call startup() first."
            raise RuntimeError(msg)
        return self._conn

    @abstractmethod
    def _schema(self) -> Sequence[str]:
        raise NotImplementedError

    @abstractmethod
    def _error(self, operation: str, exc: sqlite3.Error) -> BaseCronifyError:
        raise NotImplementedError

    async def _to_thread(
        self,
        operation: str,
        func: Callable[[], ReturnT],
    ) -> ReturnT:
        def thread_safe() -> ReturnT:
            with self._lock:
                return func()

        loop = self.getloop()
        try:
            return await loop.run_in_executor(self.threadpool, thread_safe)
        except sqlite3.Error as exc:
            raise self._error(operation, exc) from exc

    async def startup(self) -> None:
        if self._conn is not None:
            return
        try:
            conn = sqlite3.connect(
                database=self.database,
                timeout=self.timeout,
                check_same_thread=False,
            )
            _ = conn.execute("PRAGMA journal_mode=WAL;")
            _ = conn.execute("PRAGMA synchronous=NORMAL;")
            for query in self._schema():
                _ = conn.execute(query)
            conn.commit()
        except sqlite3.Error as exc:
            raise self._error("startup", exc) from exc
        self._conn = conn

    async def shutdown(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
