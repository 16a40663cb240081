"""JSON lines sink."""

import asyncio
import json
import sys
from typing import TextIO

from flowrelay.common.logging import get_logger
from flowrelay.common.metrics import RECORDS_EMITTED, SINK_ERRORS
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.records import DecodedRecord
from flowrelay.output.base import Sink

logger = get_logger(__name__)


class StdoutSink(Sink):
    """Writes one JSON object per record and line.

    Writes run in a worker thread. A reader that stops draining the
    pipe stalls this sink and, through the channel, the decode tasks,
    but never the event loop.
    """

    def __init__(
        self,
        channel: OutputChannel[DecodedRecord],
        stream: TextIO | None = None,
    ) -> None:
        """Initialize stdout sink.

        Args:
            channel: Channel to consume.
            stream: Output stream. Defaults to ``sys.stdout``.
        """
        super().__init__(channel)
        self._stream = stream

    @property
    def name(self) -> str:
        return "stdout"

    async def run(self) -> None:
        """Write records as they arrive. Unserializable records are skipped."""
        stream = self._stream or sys.stdout

        while True:
            record = await self._channel.get()
            try:
                line = json.dumps(record.to_dict())
            except (TypeError, ValueError) as e:
                SINK_ERRORS.labels(sink=self.name, error_type=type(e).__name__).inc()
                logger.error("Failed to serialize record", error=str(e))
                continue

            await asyncio.to_thread(self._write, stream, line)
            RECORDS_EMITTED.labels(sink=self.name).inc()

    @staticmethod
    def _write(stream: TextIO, line: str) -> None:
        stream.write(line + "\n")
        stream.flush()
