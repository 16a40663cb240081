"""Line protocol over UDP sink.

One datagram per record. A failed send drops the record and the
socket is rebuilt; nothing is buffered or retried.
"""

import asyncio
import socket
from typing import Any

from flowrelay.common.config import split_host_port
from flowrelay.common.exceptions import DestinationResolutionError
from flowrelay.common.logging import get_logger
from flowrelay.common.metrics import RECORDS_EMITTED, SINK_ERRORS
from flowrelay.ingestion.channel import OutputChannel
from flowrelay.ingestion.records import DecodedRecord
from flowrelay.output.base import Sink
from flowrelay.output.line_protocol import format_line_protocol

logger = get_logger(__name__)

Address = tuple[int, int, int, Any]


class UDPSink(Sink):
    """Sends InfluxDB line protocol points to a UDP endpoint."""

    def __init__(
        self,
        channel: OutputChannel[DecodedRecord],
        destination: str,
        write_timeout: float = 3.0,
        reconnect_delay: float = 1.0,
    ) -> None:
        """Initialize UDP sink.

        Args:
            channel: Channel to consume.
            destination: ``host:port`` of the line protocol listener.
            write_timeout: Deadline for a single send, in seconds.
            reconnect_delay: Pause before re-dialing after a failed dial.
        """
        super().__init__(channel)
        self._destination = destination
        self._write_timeout = write_timeout
        self._reconnect_delay = reconnect_delay
        self._sock: socket.socket | None = None

    @property
    def name(self) -> str:
        return "udp"

    async def run(self) -> None:
        """Resolve the destination once, then send until cancelled.

        If the destination does not resolve the sink returns without
        ever reading the channel.
        """
        try:
            address = await self._resolve()
        except DestinationResolutionError as e:
            SINK_ERRORS.labels(sink=self.name, error_type=e.error_code).inc()
            logger.error(
                "Name resolution failed, output disabled",
                destination=self._destination,
                error=str(e.cause or e),
            )
            return

        while True:
            try:
                self._sock = self._dial(address)
            except OSError as e:
                SINK_ERRORS.labels(sink=self.name, error_type="dial").inc()
                logger.error(
                    "Connection failed",
                    destination=self._destination,
                    error=str(e),
                )
                await asyncio.sleep(self._reconnect_delay)
                continue

            logger.info("Sending line protocol", destination=self._destination)
            try:
                await self._pump(self._sock)
            finally:
                await self.close()

    async def close(self) -> None:
        """Close the current socket, if any."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    async def _resolve(self) -> Address:
        loop = asyncio.get_running_loop()
        try:
            host, port = split_host_port(self._destination)
            infos = await loop.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        except (ValueError, OSError) as e:
            raise DestinationResolutionError(
                f"cannot resolve {self._destination!r}",
                cause=e,
            ) from e

        family, sock_type, proto, _, sockaddr = infos[0]
        return family, sock_type, proto, sockaddr

    def _dial(self, address: Address) -> socket.socket:
        family, sock_type, proto, sockaddr = address
        sock = socket.socket(family, sock_type, proto)
        try:
            sock.setblocking(False)
            sock.connect(sockaddr)
        except OSError:
            sock.close()
            raise
        return sock

    async def _pump(self, sock: socket.socket) -> None:
        """Send records until a send fails."""
        while True:
            record = await self._channel.get()
            payload = format_line_protocol(record).encode()
            try:
                await asyncio.wait_for(self._send(sock, payload), self._write_timeout)
            except (OSError, asyncio.TimeoutError) as e:
                SINK_ERRORS.labels(sink=self.name, error_type=type(e).__name__).inc()
                logger.error(
                    "Send error",
                    destination=self._destination,
                    error=str(e) or type(e).__name__,
                )
                return

            RECORDS_EMITTED.labels(sink=self.name).inc()

    async def _send(self, sock: socket.socket, payload: bytes) -> None:
        loop = asyncio.get_running_loop()
        await loop.sock_sendall(sock, payload)
