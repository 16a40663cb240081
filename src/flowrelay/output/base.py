"""Sink interface.

Exactly one sink runs per process and it is the only consumer of the
output channel.
"""

from abc import ABC, abstractmethod

from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.records import DecodedRecord


class Sink(ABC):
    """Abstract base class for record sinks."""

    def __init__(self, channel: OutputChannel[DecodedRecord]) -> None:
        self._channel = channel

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the sink name (e.g., 'stdout')."""
        ...

    @abstractmethod
    async def run(self) -> None:
        """Consume the channel until cancelled."""
        ...

    async def close(self) -> None:
        """Release resources held by the sink."""
