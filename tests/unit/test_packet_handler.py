"""Unit tests for per-datagram handling."""

import pytest
import structlog
from structlog.testing import capture_logs

from conftest import StubResolver, build_packet, make_header, make_record
from flowrelay.enrichment.cache import DNSCache
from flowrelay.enrichment.enricher import Enricher
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.handler import PacketHandler
from flowrelay.ingestion.netflow_v5 import NetFlowV5Decoder
from flowrelay.ingestion.records import DecodedRecord

EXPORTER = ("172.16.0.1", 40000)


async def drain(channel: OutputChannel[DecodedRecord]) -> list[DecodedRecord]:
    return [await channel.get() for _ in range(channel.size)]


@pytest.mark.unit
class TestPacketHandler:
    """Test cases for PacketHandler."""

    @pytest.fixture
    def handler(
        self,
        enricher: Enricher,
        channel: OutputChannel[DecodedRecord],
    ) -> PacketHandler:
        return PacketHandler(NetFlowV5Decoder(), enricher, channel)

    @pytest.mark.asyncio
    async def test_emits_all_records(
        self,
        handler: PacketHandler,
        channel: OutputChannel[DecodedRecord],
    ):
        """N records in, N decoded records out, raw fields intact."""
        originals = [make_record(src_port=p) for p in (1, 2, 3)]
        packet = build_packet(make_header(count=3), originals)

        emitted = await handler.handle(packet, EXPORTER)

        records = await drain(channel)
        assert emitted == 3
        assert [r.raw for r in records] == originals
        assert all(r.host == "172.16.0.1" for r in records)

    @pytest.mark.asyncio
    async def test_truncated_datagram(
        self,
        handler: PacketHandler,
        channel: OutputChannel[DecodedRecord],
    ):
        """Header says 2 records, only 1 present: 1 record and one error."""
        packet = build_packet(make_header(count=2), [make_record()])
        packet += b"\x01" * 10

        with capture_logs() as logs:
            emitted = await handler.handle(packet, EXPORTER)

        assert emitted == 1
        assert channel.size == 1
        errors = [entry for entry in logs if entry["log_level"] == "error"]
        assert len(errors) == 1
        assert errors[0]["error"] == "TRUNCATED_RECORD"

    @pytest.mark.asyncio
    async def test_short_datagram_dropped(
        self,
        handler: PacketHandler,
        channel: OutputChannel[DecodedRecord],
    ):
        with capture_logs() as logs:
            emitted = await handler.handle(b"\x00\x05\x00", EXPORTER)

        assert emitted == 0
        assert channel.size == 0
        assert logs[0]["error"] == "HEADER_TOO_SHORT"

    @pytest.mark.asyncio
    async def test_zero_records(
        self,
        handler: PacketHandler,
        channel: OutputChannel[DecodedRecord],
    ):
        emitted = await handler.handle(build_packet(make_header(count=0), []), EXPORTER)

        assert emitted == 0
        assert channel.size == 0

    @pytest.mark.asyncio
    async def test_strict_version_drops_packet(
        self,
        enricher: Enricher,
        channel: OutputChannel[DecodedRecord],
    ):
        handler = PacketHandler(NetFlowV5Decoder(strict_version=True), enricher, channel)
        packet = build_packet(make_header(version=7), [make_record()])

        with capture_logs() as logs:
            emitted = await handler.handle(packet, EXPORTER)

        assert emitted == 0
        assert logs[0]["error"] == "UNSUPPORTED_VERSION"

    @pytest.mark.asyncio
    async def test_resolver_failure_keeps_all_records(
        self,
        channel: OutputChannel[DecodedRecord],
    ):
        """A resolver blowing up degrades hostnames, never the datagram."""

        class UnreachableResolver(StubResolver):
            async def resolve(self, ip: str) -> str:
                raise OSError("network unreachable")

        handler = PacketHandler(
            NetFlowV5Decoder(),
            Enricher(DNSCache(UnreachableResolver())),
            channel,
        )
        packet = build_packet(make_header(count=2), [make_record(), make_record(src_port=2)])

        emitted = await handler.handle(packet, EXPORTER)

        records = await drain(channel)
        assert emitted == 2
        assert [r.src_hostname for r in records] == ["192.168.1.100", "192.168.1.100"]
        assert [r.dst_hostname for r in records] == ["10.0.0.1", "10.0.0.1"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(
        self,
        resolver: StubResolver,
        channel: OutputChannel[DecodedRecord],
    ):
        """An unexpected failure is logged instead of escaping the task."""

        class BrokenEnricher(Enricher):
            async def enrich(self, header, raw, host):
                raise RuntimeError("enricher exploded")

        handler = PacketHandler(
            NetFlowV5Decoder(),
            BrokenEnricher(DNSCache(resolver)),
            channel,
        )
        packet = build_packet(make_header(), [make_record()])

        with capture_logs() as logs:
            emitted = await handler.handle(packet, EXPORTER)

        assert emitted == 0
        assert logs[0]["event"] == "Error handling packet"

    @pytest.mark.asyncio
    async def test_exporter_bound_to_log_context(
        self,
        channel: OutputChannel[DecodedRecord],
    ):
        """Entries logged while handling a datagram carry the exporter."""
        seen: list[dict] = []

        class ContextRecordingResolver(StubResolver):
            async def resolve(self, ip: str) -> str:
                seen.append(structlog.contextvars.get_contextvars())
                return await super().resolve(ip)

        handler = PacketHandler(
            NetFlowV5Decoder(),
            Enricher(DNSCache(ContextRecordingResolver())),
            channel,
        )

        await handler.handle(build_packet(make_header(), [make_record()]), EXPORTER)

        assert seen
        assert all(context["exporter"] == "172.16.0.1" for context in seen)
        assert "exporter" not in structlog.contextvars.get_contextvars()
