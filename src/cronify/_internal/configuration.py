from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cronify._internal.clock import ServerClock
    from cronify._internal.common.types import LoopFactory, OffsetStream
    from cronify._internal.cron_parser import CronFactory
    from cronify._internal.queue.abc import Queue
    from cronify._internal.storage.abc import Storage


@dataclass(slots=True, kw_only=True)
class CronifyConfiguration:
    storage: Storage
    queue: Queue
    clock: ServerClock
    cron_factory: CronFactory
    poll_interval: float
    getloop: LoopFactory
    offset_stream: OffsetStream | None = None
    app_started: bool = False

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            msg = f"poll_interval must be > 0, got {self.poll_interval}."
            raise ValueError(msg)
