"""Record sinks.

Supports:
- stdout (JSON lines)
- udp (InfluxDB line protocol)
"""

from typing import TextIO

from flowrelay.common.config import OUTPUT_METHODS, OutputSettings
from flowrelay.common.exceptions import ConfigurationError
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.records import DecodedRecord
from flowrelay.output.base import Sink
from flowrelay.output.line_protocol import format_line_protocol
from flowrelay.output.stdout import StdoutSink
from flowrelay.output.udp import UDPSink


def create_sink(
    settings: OutputSettings,
    channel: OutputChannel[DecodedRecord],
    stream: TextIO | None = None,
) -> Sink:
    """Create the sink selected by ``settings.method``.

    Args:
        settings: Output settings.
        channel: Channel the sink will consume.
        stream: Stream for the stdout sink. Defaults to ``sys.stdout``.

    Raises:
        ConfigurationError: If the method is unknown.
    """
    if settings.method == "stdout":
        return StdoutSink(channel, stream=stream)

    if settings.method == "udp":
        return UDPSink(
            channel,
            settings.destination,
            write_timeout=settings.write_timeout,
            reconnect_delay=settings.reconnect_delay,
        )

    raise ConfigurationError(
        f"Unknown output method: {settings.method!r}",
        details={"supported": list(OUTPUT_METHODS)},
    )


__all__ = [
    "Sink",
    "StdoutSink",
    "UDPSink",
    "create_sink",
    "format_line_protocol",
]
