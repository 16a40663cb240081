"""InfluxDB line protocol rendering."""

from flowrelay.ingestion.records import DecodedRecord

MEASUREMENT = "netflow"


def format_line_protocol(record: DecodedRecord) -> str:
    """Render a record as one line protocol point.

    Tag values are written unescaped.
    """
    raw = record.raw
    tags = (
        f"host={record.host},"
        f"srcAddr={record.src_ip},"
        f"dstAddr={record.dst_ip},"
        f"srcHostName={record.src_hostname},"
        f"dstHostName={record.dst_hostname},"
        f"protocol={raw.protocol},"
        f"srcPort={raw.src_port},"
        f"dstPort={raw.dst_port},"
        f"input={raw.input_snmp},"
        f"output={raw.output_snmp}"
    )
    fields = (
        f"inBytes={raw.octets},"
        f"inPackets={raw.packets},"
        f"duration={record.duration}"
    )
    return f"{MEASUREMENT},{tags} {fields} {record.timestamp_ns}"
