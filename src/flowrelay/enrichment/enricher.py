"""Turns raw NetFlow v5 records into decoded, hostname-enriched records."""

from dataclasses import replace

from flowrelay.enrichment.cache import DNSCache
from flowrelay.ingestion.records import DecodedRecord, PacketHeader, RawFlowRecord

UINT32_MASK = 0xFFFFFFFF
DURATION_MASK = 0xFFFF


def int_to_ipv4(value: int) -> str:
    """Render a 32-bit address as dotted decimal, most significant octet first."""
    return (
        f"{(value >> 24) & 0xFF}.{(value >> 16) & 0xFF}."
        f"{(value >> 8) & 0xFF}.{value & 0xFF}"
    )


def flow_duration(first: int, last: int) -> int:
    """Flow duration from device uptime timestamps.

    The subtraction wraps at 2^32 like the uptime counter itself. The
    result is in seconds, truncated, and kept to 16 bits.
    """
    return (((last - first) & UINT32_MASK) // 1000) & DURATION_MASK


def decode_sampling(packed: int) -> tuple[int, int]:
    """Split the packed sampling field into (algorithm, interval)."""
    return (packed >> 14) & 0x3, packed & 0x3FFF


class Enricher:
    """Builds ``DecodedRecord`` instances.

    Hostnames come from the DNS cache; a failed lookup yields the IP
    string, so enrichment never fails.
    """

    def __init__(self, dns_cache: DNSCache) -> None:
        self._dns_cache = dns_cache

    async def enrich(
        self,
        header: PacketHeader,
        raw: RawFlowRecord,
        host: str,
    ) -> DecodedRecord:
        """Decode one raw record.

        Args:
            header: Header of the datagram the record came from.
            raw: Raw flow record.
            host: Exporter address the datagram was received from.

        Returns:
            Decoded record.
        """
        src_ip = int_to_ipv4(raw.src_addr)
        dst_ip = int_to_ipv4(raw.dst_addr)
        next_hop_ip = int_to_ipv4(raw.next_hop)

        duration = flow_duration(raw.first, raw.last)
        algorithm, interval = decode_sampling(header.sampling_interval)

        src_hostname = await self._dns_cache.get(src_ip)
        dst_hostname = await self._dns_cache.get(dst_ip)

        return DecodedRecord(
            header=replace(header, sampling_interval=interval),
            raw=raw,
            host=host,
            src_ip=src_ip,
            dst_ip=dst_ip,
            next_hop_ip=next_hop_ip,
            src_hostname=src_hostname,
            dst_hostname=dst_hostname,
            duration=duration,
            sampling_algorithm=algorithm,
        )
