from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypedDict

from typing_extensions import NotRequired, override

from cronify._internal.clock import to_datetime

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from cronify._internal.common.types import Timestamp


class JobPatch(TypedDict):
    """Partial job record written to the store."""

    pattern: NotRequired[str]
    next_run: NotRequired[int]
    last_run: NotRequired[int]
    data: NotRequired[Mapping[str, Any]]


@dataclass(slots=True, kw_only=True)
class Job:
    """A named schedule and the payload dispatched on each occurrence.

    Instances returned by a store are working copies; changing them has
    no effect until they are written back.
    """

    name: str
    pattern: str
    next_run: Timestamp
    data: dict[str, Any] = field(default_factory=dict)
    last_run: Timestamp | None = None

    @property
    def next_run_at(self) -> datetime:
        return to_datetime(self.next_run)

    @property
    def last_run_at(self) -> datetime | None:
        if self.last_run is None:
            return None
        return to_datetime(self.last_run)

    def is_due(self, now: Timestamp) -> bool:
        return self.next_run <= now

    def copy(self) -> Job:
        return Job(
            name=self.name,
            pattern=self.pattern,
            next_run=self.next_run,
            data=copy.deepcopy(self.data),
            last_run=self.last_run,
        )

    @override
    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}("
            f"name={self.name!r}, "
            f"pattern={self.pattern!r}, "
            f"next_run_at={self.next_run_at.isoformat()})"
        )


def apply_patch(
    name: str,
    current: Job | None,
    patch: JobPatch,
) -> Job | None:
    """Merge `patch` into `current` and return the resulting job.

    Supplied fields overwrite, `data` is merged key by key. A patch
    without `pattern` and `next_run` cannot create a job, so it returns
    None when `current` is missing.
    """
    data = copy.deepcopy(dict(patch.get("data", {})))
    if current is None:
        if "pattern" not in patch or "next_run" not in patch:
            return None
        return Job(
            name=name,
            pattern=patch["pattern"],
            next_run=patch["next_run"],
            data=data,
            last_run=patch.get("last_run"),
        )

    job = current.copy()
    if "pattern" in patch:
        job.pattern = patch["pattern"]
    if "next_run" in patch:
        job.next_run = patch["next_run"]
    if "last_run" in patch:
        job.last_run = patch["last_run"]
    job.data.update(data)
    return job
