"""Bounded output channel between packet tasks and the sink.

Producers block while the channel is full. Nothing is sampled or
dropped here: a slow sink holds back packet tasks, and sustained
overload ends up overflowing the kernel receive buffer instead.
"""

import asyncio
from dataclasses import dataclass
from typing import Generic, TypeVar

from flowrelay.common.metrics import CHANNEL_SIZE

T = TypeVar("T")


@dataclass
class ChannelStats:
    """Statistics about channel usage."""

    size: int
    capacity: int
    total_put: int
    total_get: int

    @property
    def utilization(self) -> float:
        """Channel utilization as percentage."""
        return (self.size / self.capacity) * 100


class OutputChannel(Generic[T]):
    """Bounded FIFO with blocking put and get.

    Intended for many producers and exactly one consumer.
    """

    def __init__(self, maxsize: int = 100) -> None:
        """Initialize channel.

        Args:
            maxsize: Capacity. Must be positive.
        """
        if maxsize < 1:
            raise ValueError(f"channel capacity must be positive, got {maxsize}")

        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._capacity = maxsize
        self._total_put = 0
        self._total_get = 0

    @property
    def size(self) -> int:
        """Current number of queued items."""
        return self._queue.qsize()

    @property
    def capacity(self) -> int:
        """Maximum number of queued items."""
        return self._capacity

    @property
    def stats(self) -> ChannelStats:
        """Get current statistics."""
        return ChannelStats(
            size=self.size,
            capacity=self._capacity,
            total_put=self._total_put,
            total_get=self._total_get,
        )

    async def put(self, item: T) -> None:
        """Add item, waiting for free space if the channel is full."""
        await self._queue.put(item)
        self._total_put += 1
        CHANNEL_SIZE.set(self.size)

    async def get(self) -> T:
        """Get next item.

        Blocks until an item is available.
        """
        item = await self._queue.get()
        self._total_get += 1
        CHANNEL_SIZE.set(self.size)
        return item
