from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path

import pytest

from cronify import Job
from cronify.exceptions import StoreError
from cronify.storage import MemoryStorage, SQLiteStorage, Storage
from tests.conftest import NOW_MS


@pytest.fixture
async def sqlite(tmp_path: Path) -> AsyncIterator[SQLiteStorage]:
    storage = SQLiteStorage(tmp_path / "jobs.db", table_name="test_jobs")
    await storage.startup()

    yield storage

    await storage.shutdown()


@pytest.fixture(params=["memory", "sqlite"])
async def any_storage(
    request: pytest.FixtureRequest,
    tmp_path: Path,
) -> AsyncIterator[Storage]:
    storage: Storage
    if request.param == "memory":
        storage = MemoryStorage()
    else:
        storage = SQLiteStorage(tmp_path / "jobs.db")
    await storage.startup()

    yield storage

    await storage.shutdown()


async def add(storage: Storage, name: str, next_run: int) -> Job | None:
    return await storage.put(
        name,
        {"pattern": "* * * * * *", "next_run": next_run, "data": {"n": name}},
    )


async def test_put_and_get(any_storage: Storage) -> None:
    assert await any_storage.get("j1") is None
    assert await any_storage.get_all() == {}

    job = await add(any_storage, "j1", NOW_MS)

    expected = Job(
        name="j1",
        pattern="* * * * * *",
        next_run=NOW_MS,
        data={"n": "j1"},
    )
    assert job == expected
    assert await any_storage.get("j1") == expected
    assert await any_storage.get_all() == {"j1": expected}


async def test_put_merges_fields(any_storage: Storage) -> None:
    _ = await add(any_storage, "j1", NOW_MS)

    job = await any_storage.put(
        "j1",
        {"pattern": "0 * * * * *", "data": {"extra": [1, 2]}},
    )

    assert job is not None
    assert job.pattern == "0 * * * * *"
    assert job.next_run == NOW_MS
    assert job.data == {"n": "j1", "extra": [1, 2]}
    assert await any_storage.get("j1") == job


async def test_partial_put_of_missing_job_is_dropped(
    any_storage: Storage,
) -> None:
    job = await any_storage.put("gone", {"next_run": 1, "last_run": 1})

    assert job is None
    assert await any_storage.get("gone") is None


async def test_range_by_next_run(any_storage: Storage) -> None:
    _ = await add(any_storage, "late", NOW_MS)
    _ = await add(any_storage, "early", NOW_MS - 5000)
    _ = await add(any_storage, "future", NOW_MS + 1)

    due = await any_storage.range_by_next_run(NOW_MS)

    assert list(due) == ["early", "late"]
    assert await any_storage.range_by_next_run(NOW_MS - 5001) == {}


async def test_put_many(any_storage: Storage) -> None:
    _ = await add(any_storage, "j1", NOW_MS)
    _ = await add(any_storage, "j2", NOW_MS)

    await any_storage.put_many(
        {
            "j1": {"next_run": NOW_MS + 2000, "last_run": NOW_MS + 1000},
            "j2": {"next_run": NOW_MS + 4000, "last_run": NOW_MS + 1000},
            "gone": {"next_run": NOW_MS, "last_run": NOW_MS},
        }
    )
    await any_storage.put_many({})

    jobs = await any_storage.get_all()
    assert set(jobs) == {"j1", "j2"}
    assert jobs["j1"].next_run == NOW_MS + 2000
    assert jobs["j2"].next_run == NOW_MS + 4000
    assert jobs["j2"].last_run == NOW_MS + 1000


async def test_delete_is_idempotent(any_storage: Storage) -> None:
    _ = await add(any_storage, "j1", NOW_MS)

    await any_storage.delete("j1")
    await any_storage.delete("j1")

    assert await any_storage.get("j1") is None


async def test_returns_working_copies(any_storage: Storage) -> None:
    _ = await add(any_storage, "j1", NOW_MS)

    due = await any_storage.range_by_next_run(NOW_MS)
    due["j1"].next_run = NOW_MS + 1000
    due["j1"].data["n"] = "changed"

    job = await any_storage.get("j1")
    assert job is not None
    assert job.next_run == NOW_MS
    assert job.data == {"n": "j1"}


async def test_sqlite_lifespan(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "jobs.db", table_name="test_table")
    with pytest.raises(RuntimeError):
        _ = storage.conn

    assert storage._conn is None
    await storage.shutdown()


def test_sqlite_invalid_table_name() -> None:
    with pytest.raises(ValueError, match="Invalid table name"):
        _ = SQLiteStorage(":memory:", table_name="jobs; DROP TABLE x")


async def test_sqlite_persists_between_connections(tmp_path: Path) -> None:
    first = SQLiteStorage(tmp_path / "jobs.db")
    await first.startup()
    _ = await add(first, "j1", NOW_MS)
    await first.shutdown()

    second = SQLiteStorage(str(tmp_path / "jobs.db"))
    await second.startup()
    job = await second.get("j1")
    await second.shutdown()

    assert job is not None
    assert job.data == {"n": "j1"}


async def test_sqlite_errors_are_store_errors(sqlite: SQLiteStorage) -> None:
    _ = sqlite.conn.execute("DROP TABLE test_jobs;")

    with pytest.raises(StoreError) as exc_info:
        _ = await sqlite.range_by_next_run(NOW_MS)

    assert exc_info.value.operation == "range_by_next_run"
    assert "no such table" in exc_info.value.reason


async def test_sqlite_unserializable_data_is_store_error(
    sqlite: SQLiteStorage,
) -> None:
    _ = await add(sqlite, "j1", NOW_MS)

    with pytest.raises(StoreError) as exc_info:
        _ = await sqlite.put(
            "j1",
            {"data": {"at": datetime.now(timezone.utc)}},
        )

    assert exc_info.value.operation == "put"
    assert isinstance(exc_info.value.__cause__, TypeError)
    job = await sqlite.get("j1")
    assert job is not None
    assert job.data == {"n": "j1"}
