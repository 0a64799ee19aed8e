from __future__ import annotations

from abc import ABCMeta, abstractmethod
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cronify._internal.common.types import Payload


class Queue(Protocol, metaclass=ABCMeta):
    """Work queue the scheduler dispatches job payloads to.

    Payloads are forwarded verbatim. Failures are raised as `QueueError`.
    """

    @abstractmethod
    async def startup(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def shutdown(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def enqueue(self, payload: Payload) -> None:
        raise NotImplementedError
