"""Main relay service.

Wires receiver, decoder, enricher, output channel and sink together.
"""

import asyncio
from typing import Any, TextIO

from flowrelay.common.config import Settings, get_settings
from flowrelay.common.logging import get_logger
from flowrelay.enrichment.cache import DNSCache
from flowrelay.enrichment.enricher import Enricher
from flowrelay.enrichment.resolvers.dns import HostnameResolver, PTRResolver
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.handler import PacketHandler
from flowrelay.ingestion.netflow_v5 import NetFlowV5Decoder
from flowrelay.ingestion.records import DecodedRecord
from flowrelay.ingestion.server import FlowReceiver
from flowrelay.output import create_sink

logger = get_logger(__name__)


class FlowRelay:
    """NetFlow v5 relay service."""

    def __init__(
        self,
        settings: Settings | None = None,
        resolver: HostnameResolver | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """Initialize relay.

        The sink is created here, so an unknown output method fails
        before any socket is bound.

        Args:
            settings: Application settings.
            resolver: Hostname resolver. Creates a PTRResolver if not provided.
            stdout: Stream for the stdout sink. Defaults to ``sys.stdout``.

        Raises:
            ConfigurationError: If the output method is unknown.
        """
        self._settings = settings or get_settings()

        self._channel: OutputChannel[DecodedRecord] = OutputChannel(
            self._settings.output.channel_size,
        )

        self._sink = create_sink(self._settings.output, self._channel, stream=stdout)

        self._dns_cache = DNSCache(
            resolver or PTRResolver(self._settings.dns),
            ttl=self._settings.dns.cache_ttl,
        )
        self._handler = PacketHandler(
            NetFlowV5Decoder(strict_version=self._settings.receiver.strict_version),
            Enricher(self._dns_cache),
            self._channel,
        )
        self._receiver = FlowReceiver(self._handler, self._settings.receiver)

        self._sink_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def receiver(self) -> FlowReceiver:
        """UDP receiver feeding the pipeline."""
        return self._receiver

    @property
    def channel(self) -> OutputChannel[DecodedRecord]:
        """Channel between decode tasks and the sink."""
        return self._channel

    @property
    def dns_cache(self) -> DNSCache:
        """Hostname cache shared by all decode tasks."""
        return self._dns_cache

    async def start(self) -> None:
        """Start the sink, then the receiver.

        Raises:
            ReceiverStartupError: If the listening socket cannot be set up.
        """
        if self._running:
            return

        logger.info(
            "Starting flow relay",
            listen=self._settings.receiver.listen_address,
            method=self._sink.name,
            destination=self._settings.output.destination,
        )

        self._sink_task = asyncio.create_task(self._sink.run())
        try:
            await self._receiver.start()
        except Exception:
            await self._stop_sink()
            raise

        self._running = True
        logger.info("Flow relay started")

    async def stop(self) -> None:
        """Stop receiving and cancel the sink."""
        if not self._running:
            return

        self._running = False
        logger.info("Stopping flow relay")

        await self._receiver.stop()
        await self._stop_sink()

        logger.info("Flow relay stopped")

    async def _stop_sink(self) -> None:
        if self._sink_task:
            self._sink_task.cancel()
            try:
                await self._sink_task
            except asyncio.CancelledError:
                pass
            self._sink_task = None
        await self._sink.close()

    @property
    def stats(self) -> dict[str, Any]:
        """Get relay statistics."""
        channel_stats = self._channel.stats
        return {
            "running": self._running,
            "sink": self._sink.name,
            "pending_packets": self._receiver.pending,
            "channel_size": channel_stats.size,
            "channel_capacity": channel_stats.capacity,
            "channel_utilization": channel_stats.utilization,
            "records_enqueued": channel_stats.total_put,
            "records_consumed": channel_stats.total_get,
            "dns_cache": self._dns_cache.stats,
        }
