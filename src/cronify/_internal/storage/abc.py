from __future__ import annotations

from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING, Protocol, TypeVar

from cronify._internal.exceptions import BaseCronifyError, StoreError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Mapping

    from cronify._internal.common.types import Timestamp
    from cronify._internal.job import Job, JobPatch

ReturnT = TypeVar("ReturnT")


async def call_store(operation: str, call: Awaitable[ReturnT]) -> ReturnT:
    """Await a store call, raising foreign failures as `StoreError`."""
    try:
        return await call
    except BaseCronifyError:
        raise
    except Exception as exc:
        raise StoreError(operation, str(exc)) from exc


class Storage(Protocol, metaclass=ABCMeta):
    """Job store consumed by the scheduler.

    Every operation is atomic for a single job name. Nothing is assumed
    across names: `put_many` may partially succeed. Failures are raised
    as `StoreError`.
    """

    @abstractmethod
    async def startup(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def shutdown(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get(self, name: str) -> Job | None:
        raise NotImplementedError

    @abstractmethod
    async def get_all(self) -> dict[str, Job]:
        raise NotImplementedError

    @abstractmethod
    async def range_by_next_run(self, now: Timestamp) -> dict[str, Job]:
        """Return jobs with `next_run <= now`, earliest first."""
        raise NotImplementedError

    @abstractmethod
    async def put(self, name: str, patch: JobPatch) -> Job | None:
        """Merge `patch` into the job stored under `name`.

        Returns the stored job, or None when the patch was dropped
        because it cannot create a missing job.
        """
        raise NotImplementedError

    @abstractmethod
    async def put_many(self, patches: Mapping[str, JobPatch]) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, name: str) -> None:
        raise NotImplementedError
