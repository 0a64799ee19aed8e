from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from cronify._internal.job import Job

Timestamp: TypeAlias = int
Payload: TypeAlias = Mapping[str, Any]
LoopFactory: TypeAlias = Callable[[], asyncio.AbstractEventLoop]
OffsetStream: TypeAlias = AsyncIterator["float | None"]
PollCallback: TypeAlias = "Callable[[dict[str, Job]], None]"
ErrorCallback: TypeAlias = Callable[[Exception], None]
StopFunction: TypeAlias = Callable[[], None]
