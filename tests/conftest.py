"""Pytest configuration and fixtures for FlowRelay tests."""

import struct
from datetime import datetime, timedelta, timezone

import pytest

from flowrelay.common.exceptions import DNSResolutionError
from flowrelay.enrichment.cache import DNSCache
from flowrelay.enrichment.enricher import Enricher
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.records import DecodedRecord, PacketHeader, RawFlowRecord


# =============================================================================
# Packet builders
# =============================================================================


def pack_header(header: PacketHeader) -> bytes:
    """Encode a header in NetFlow v5 wire format (24 bytes)."""
    return struct.pack(
        "!HHIIIIBBH",
        header.version,
        header.count,
        header.sys_uptime,
        header.unix_secs,
        header.unix_nsecs,
        header.flow_sequence,
        header.engine_type,
        header.engine_id,
        header.sampling_interval,
    )


def pack_record(record: RawFlowRecord, pad1: int = 0, pad2: int = 0) -> bytes:
    """Encode a flow record in NetFlow v5 wire format (48 bytes)."""
    return struct.pack(
        "!IIIHHIIIIHHBBBBHHBBH",
        record.src_addr,
        record.dst_addr,
        record.next_hop,
        record.input_snmp,
        record.output_snmp,
        record.packets,
        record.octets,
        record.first,
        record.last,
        record.src_port,
        record.dst_port,
        pad1,
        record.tcp_flags,
        record.protocol,
        record.tos,
        record.src_as,
        record.dst_as,
        record.src_mask,
        record.dst_mask,
        pad2,
    )


def make_header(**overrides) -> PacketHeader:
    """Header with sensible defaults."""
    values = {
        "version": 5,
        "count": 1,
        "sys_uptime": 1000000,
        "unix_secs": 1700000000,
        "unix_nsecs": 123456789,
        "flow_sequence": 42,
        "engine_type": 1,
        "engine_id": 7,
        "sampling_interval": 0,
    }
    values.update(overrides)
    return PacketHeader(**values)


def make_record(**overrides) -> RawFlowRecord:
    """Flow record with sensible defaults (192.168.1.100:54321 -> 10.0.0.1:443/tcp)."""
    values = {
        "src_addr": 0xC0A80164,
        "dst_addr": 0x0A000001,
        "next_hop": 0x0A0000FE,
        "input_snmp": 1,
        "output_snmp": 2,
        "packets": 100,
        "octets": 50000,
        "first": 900000,
        "last": 999000,
        "src_port": 54321,
        "dst_port": 443,
        "tcp_flags": 0x18,
        "protocol": 6,
        "tos": 0,
        "src_as": 64512,
        "dst_as": 64513,
        "src_mask": 24,
        "dst_mask": 16,
    }
    values.update(overrides)
    return RawFlowRecord(**values)


def build_packet(header: PacketHeader, records: list[RawFlowRecord]) -> bytes:
    """Encode a full datagram."""
    return pack_header(header) + b"".join(pack_record(r) for r in records)


# =============================================================================
# Test doubles
# =============================================================================


class StubResolver:
    """Deterministic resolver that counts invocations."""

    def __init__(self, names: dict[str, str] | None = None) -> None:
        self.names = names or {}
        self.calls: list[str] = []

    async def resolve(self, ip: str) -> str:
        self.calls.append(ip)
        if ip not in self.names:
            raise DNSResolutionError(f"no PTR record for {ip}")
        return self.names[ip]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def resolver() -> StubResolver:
    """Resolver knowing the default record's endpoints."""
    return StubResolver({
        "192.168.1.100": "client.example.com.",
        "10.0.0.1": "server.example.com.",
    })


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dns_cache(resolver: StubResolver, clock: FakeClock) -> DNSCache:
    return DNSCache(resolver, clock=clock)


@pytest.fixture
def enricher(dns_cache: DNSCache) -> Enricher:
    return Enricher(dns_cache)


@pytest.fixture
def channel() -> OutputChannel[DecodedRecord]:
    return OutputChannel(maxsize=100)


@pytest.fixture
def sample_netflow_v5_packet() -> bytes:
    """Sample NetFlow v5 packet with one record."""
    return build_packet(make_header(), [make_record()])


@pytest.fixture
def decoded_record() -> DecodedRecord:
    """A fully decoded record."""
    return DecodedRecord(
        header=make_header(sampling_interval=100),
        raw=make_record(),
        host="172.16.0.1",
        src_ip="192.168.1.100",
        dst_ip="10.0.0.1",
        next_hop_ip="10.0.0.254",
        src_hostname="client.example.com.",
        dst_hostname="server.example.com.",
        duration=99,
        sampling_algorithm=3,
    )


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
