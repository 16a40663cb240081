"""NetFlow v5 decoder.

NetFlow v5 is a fixed-format protocol with a simple header and
fixed-size flow records, all big-endian.

Header format (24 bytes):
  - version: 2 bytes
  - count: 2 bytes (number of flows)
  - sys_uptime: 4 bytes (ms since boot)
  - unix_secs: 4 bytes (current time)
  - unix_nsecs: 4 bytes (residual nanoseconds)
  - flow_sequence: 4 bytes (sequence counter)
  - engine_type: 1 byte
  - engine_id: 1 byte
  - sampling_interval: 2 bytes (2 bits mode, 14 bits interval)

Flow record format (48 bytes each):
  - srcaddr, dstaddr, nexthop: 4 bytes each
  - input, output: 2 bytes each
  - dPkts, dOctets: 4 bytes each
  - first, last: 4 bytes each (sysuptime at start/end)
  - srcport, dstport: 2 bytes each
  - pad1: 1 byte
  - tcp_flags, prot, tos: 1 byte each
  - src_as, dst_as: 2 bytes each
  - src_mask, dst_mask: 1 byte each
  - pad2: 2 bytes
"""

import struct
from collections.abc import Iterator

from flowrelay.common.exceptions import (
    HeaderTooShortError,
    TruncatedRecordError,
    UnsupportedVersionError,
)
from flowrelay.ingestion.records import PacketHeader, RawFlowRecord

NETFLOW_V5_VERSION = 5

HEADER_STRUCT = struct.Struct("!HHIIIIBBH")
RECORD_STRUCT = struct.Struct("!IIIHHIIIIHHBBBBHHBBH")

NETFLOW_V5_HEADER_SIZE = HEADER_STRUCT.size  # 24
NETFLOW_V5_RECORD_SIZE = RECORD_STRUCT.size  # 48


class NetFlowV5Decoder:
    """Decoder for NetFlow version 5 datagrams.

    The version field is not checked by default, matching exporters
    that are known to mislabel their packets. Set ``strict_version``
    to reject anything that is not version 5.
    """

    protocol_name = "netflow_v5"

    def __init__(self, strict_version: bool = False) -> None:
        self._strict_version = strict_version

    def parse_header(self, data: bytes) -> PacketHeader:
        """Parse the packet header from the front of a datagram.

        Args:
            data: Raw UDP payload.

        Returns:
            Parsed header.

        Raises:
            HeaderTooShortError: If fewer than 24 bytes are available.
            UnsupportedVersionError: In strict mode, if version is not 5.
        """
        if len(data) < NETFLOW_V5_HEADER_SIZE:
            raise HeaderTooShortError(
                f"netflow_v5: packet too short "
                f"({len(data)} < {NETFLOW_V5_HEADER_SIZE} bytes)",
                details={"length": len(data)},
            )

        header = PacketHeader(*HEADER_STRUCT.unpack_from(data, 0))

        if self._strict_version and header.version != NETFLOW_V5_VERSION:
            raise UnsupportedVersionError(
                f"netflow_v5: invalid version {header.version}",
                details={"version": header.version},
            )

        return header

    def iter_records(self, data: bytes, header: PacketHeader) -> Iterator[RawFlowRecord]:
        """Yield the flow records announced by the header, in wire order.

        Args:
            data: Raw UDP payload, header included.
            header: Header parsed from the same payload.

        Yields:
            Raw flow records.

        Raises:
            TruncatedRecordError: When the payload ends before the
                announced number of records. Records before the
                truncation point have already been yielded.
        """
        offset = NETFLOW_V5_HEADER_SIZE

        for index in range(header.count):
            if len(data) - offset < NETFLOW_V5_RECORD_SIZE:
                raise TruncatedRecordError(
                    f"netflow_v5: record {index} truncated "
                    f"({len(data) - offset} < {NETFLOW_V5_RECORD_SIZE} bytes)",
                    details={
                        "index": index,
                        "announced": header.count,
                        "length": len(data),
                    },
                )

            yield self._parse_record(data, offset)
            offset += NETFLOW_V5_RECORD_SIZE

    def _parse_record(self, data: bytes, offset: int) -> RawFlowRecord:
        (
            srcaddr,
            dstaddr,
            nexthop,
            input_if,
            output_if,
            packets,
            octets,
            first,
            last,
            srcport,
            dstport,
            _pad1,
            tcp_flags,
            protocol,
            tos,
            src_as,
            dst_as,
            src_mask,
            dst_mask,
            _pad2,
        ) = RECORD_STRUCT.unpack_from(data, offset)

        return RawFlowRecord(
            src_addr=srcaddr,
            dst_addr=dstaddr,
            next_hop=nexthop,
            input_snmp=input_if,
            output_snmp=output_if,
            packets=packets,
            octets=octets,
            first=first,
            last=last,
            src_port=srcport,
            dst_port=dstport,
            tcp_flags=tcp_flags,
            protocol=protocol,
            tos=tos,
            src_as=src_as,
            dst_as=dst_as,
            src_mask=src_mask,
            dst_mask=dst_mask,
        )
