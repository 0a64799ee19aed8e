from __future__ import annotations

from typing import TYPE_CHECKING

from typing_extensions import override

from cronify._internal.job import apply_patch
from cronify._internal.storage.abc import Storage

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cronify._internal.common.types import Timestamp
    from cronify._internal.job import Job, JobPatch


class MemoryStorage(Storage):
    """Process-local store, handy for tests and single-process setups."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}

    @override
    async def startup(self) -> None:
        pass

    @override
    async def shutdown(self) -> None:
        pass

    @override
    async def get(self, name: str) -> Job | None:
        job = self._jobs.get(name)
        return None if job is None else job.copy()

    @override
    async def get_all(self) -> dict[str, Job]:
        return {name: job.copy() for name, job in self._jobs.items()}

    @override
    async def range_by_next_run(self, now: Timestamp) -> dict[str, Job]:
        due = sorted(
            (job for job in self._jobs.values() if job.is_due(now)),
            key=lambda job: (job.next_run, job.name),
        )
        return {job.name: job.copy() for job in due}

    @override
    async def put(self, name: str, patch: JobPatch) -> Job | None:
        job = apply_patch(name, self._jobs.get(name), patch)
        if job is None:
            return None
        self._jobs[name] = job
        return job.copy()

    @override
    async def put_many(self, patches: Mapping[str, JobPatch]) -> None:
        for name, patch in patches.items():
            _ = await self.put(name, patch)

    @override
    async def delete(self, name: str) -> None:
        _ = self._jobs.pop(name, None)
