"""Per-datagram decode, enrich and enqueue."""

from flowrelay.common.exceptions import PacketDecodeError
from flowrelay.common.logging import get_logger, packet_context
from flowrelay.common.metrics import PACKET_ERRORS, RECORDS_DECODED
from flowrelay.enrichment.enricher import Enricher
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.netflow_v5 import NetFlowV5Decoder
from flowrelay.ingestion.records import DecodedRecord

logger = get_logger(__name__)


class PacketHandler:
    """Runs the pipeline for one datagram.

    Each record is enriched and enqueued before the next one is read,
    so records of a datagram reach the channel in wire order.
    """

    def __init__(
        self,
        decoder: NetFlowV5Decoder,
        enricher: Enricher,
        channel: OutputChannel[DecodedRecord],
    ) -> None:
        self._decoder = decoder
        self._enricher = enricher
        self._channel = channel

    async def handle(self, data: bytes, addr: tuple[str, int]) -> int:
        """Decode a datagram and push its records onto the channel.

        Malformed datagrams are logged and dropped; a truncated record
        ends processing of the datagram after the records before it
        have been emitted.

        Args:
            data: Raw UDP payload.
            addr: Sender address.

        Returns:
            Number of records emitted.
        """
        host = addr[0]
        emitted = 0

        with packet_context(exporter=host):
            try:
                header = self._decoder.parse_header(data)
                for raw in self._decoder.iter_records(data, header):
                    record = await self._enricher.enrich(header, raw, host)
                    await self._channel.put(record)
                    emitted += 1
                    RECORDS_DECODED.inc()

            except PacketDecodeError as e:
                PACKET_ERRORS.labels(error_type=e.error_code).inc()
                logger.error(
                    "Failed to decode packet",
                    size=len(data),
                    emitted=emitted,
                    **e.to_dict(),
                )

            except Exception as e:
                PACKET_ERRORS.labels(error_type=type(e).__name__).inc()
                logger.exception(
                    "Error handling packet",
                    emitted=emitted,
                    error=str(e),
                )

        return emitted
