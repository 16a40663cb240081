"""NetFlow v5 header, raw record and decoded record dataclasses.

The decoded record is what the pipeline hands to the output channel.
It is frozen: once enqueued nobody mutates it.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PacketHeader:
    """NetFlow v5 packet header (24 bytes on the wire)."""

    version: int
    count: int
    sys_uptime: int
    unix_secs: int
    unix_nsecs: int
    flow_sequence: int
    engine_type: int
    engine_id: int
    sampling_interval: int


@dataclass(frozen=True, slots=True)
class RawFlowRecord:
    """NetFlow v5 flow record as found on the wire (48 bytes).

    Addresses are kept as 32-bit integers, timestamps as device uptime
    in milliseconds. The two padding fields are not kept.
    """

    src_addr: int
    dst_addr: int
    next_hop: int
    input_snmp: int
    output_snmp: int
    packets: int
    octets: int
    first: int
    last: int
    src_port: int
    dst_port: int
    tcp_flags: int
    protocol: int
    tos: int
    src_as: int
    dst_as: int
    src_mask: int
    dst_mask: int


@dataclass(frozen=True, slots=True)
class DecodedRecord:
    """Fully decoded and enriched flow record.

    ``header.sampling_interval`` holds the decoded 14-bit interval; the
    packed wire value is not retained.
    """

    header: PacketHeader
    raw: RawFlowRecord

    # Exporter address as seen by the collector
    host: str

    src_ip: str
    dst_ip: str
    next_hop_ip: str
    src_hostname: str
    dst_hostname: str

    duration: int
    sampling_algorithm: int

    @property
    def sampling_interval(self) -> int:
        """Decoded sampling interval."""
        return self.header.sampling_interval

    @property
    def timestamp_ns(self) -> int:
        """Export time in nanoseconds since the epoch."""
        return self.header.unix_secs * 1_000_000_000 + self.header.unix_nsecs

    def to_dict(self) -> dict[str, Any]:
        """Convert to the flat JSON document written by the stdout sink."""
        header = self.header
        raw = self.raw
        return {
            "Version": header.version,
            "FlowRecords": header.count,
            "Uptime": header.sys_uptime,
            "UnixSec": header.unix_secs,
            "UnixNsec": header.unix_nsecs,
            "FlowSeqNum": header.flow_sequence,
            "EngineType": header.engine_type,
            "EngineID": header.engine_id,
            "SamplingInterval": header.sampling_interval,
            "Ipv4SrcAddrInt": raw.src_addr,
            "Ipv4DstAddrInt": raw.dst_addr,
            "Ipv4NextHopInt": raw.next_hop,
            "InputSnmp": raw.input_snmp,
            "OutputSnmp": raw.output_snmp,
            "InPkts": raw.packets,
            "InBytes": raw.octets,
            "FirstInt": raw.first,
            "LastInt": raw.last,
            "L4SrcPort": raw.src_port,
            "L4DstPort": raw.dst_port,
            "TCPFlags": raw.tcp_flags,
            "Protocol": raw.protocol,
            "SrcTos": raw.tos,
            "SrcAs": raw.src_as,
            "DstAs": raw.dst_as,
            "SrcMask": raw.src_mask,
            "DstMask": raw.dst_mask,
            "Host": self.host,
            "SamplingAlgorithm": self.sampling_algorithm,
            "Ipv4SrcAddr": self.src_ip,
            "Ipv4DstAddr": self.dst_ip,
            "Ipv4NextHop": self.next_hop_ip,
            "SrcHostName": self.src_hostname,
            "DstHostName": self.dst_hostname,
            "Duration": self.duration,
        }
