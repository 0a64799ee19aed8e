from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from typing_extensions import override

from cronify._internal.queue.abc import Queue

if TYPE_CHECKING:
    from cronify._internal.common.types import Payload


class MemoryQueue(Queue):
    def __init__(self) -> None:
        self.tasks: list[dict[str, Any]] = []

    @override
    async def startup(self) -> None:
        pass

    @override
    async def shutdown(self) -> None:
        pass

    @override
    async def enqueue(self, payload: Payload) -> None:
        self.tasks.append(copy.deepcopy(dict(payload)))
