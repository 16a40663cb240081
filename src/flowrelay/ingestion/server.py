"""Async UDP receiver for NetFlow v5 packets.

Every datagram is handed to its own task; the receive side never
waits for decoding to finish.
"""

import asyncio
import socket
from typing import Any

from flowrelay.common.config import ReceiverSettings, get_settings, split_host_port
from flowrelay.common.exceptions import ReceiverStartupError
from flowrelay.common.logging import get_logger
from flowrelay.common.metrics import PACKETS_RECEIVED
from flowrelay.ingestion.handler import PacketHandler

logger = get_logger(__name__)

# Read buffer size; longer datagrams are cut to this length
MAX_DATAGRAM_SIZE = 4096


class FlowProtocol(asyncio.DatagramProtocol):
    """UDP protocol handler for flow packets."""

    def __init__(self, handler: PacketHandler) -> None:
        """Initialize protocol handler.

        Args:
            handler: Pipeline run for each datagram.
        """
        self._handler = handler
        self._tasks: set[asyncio.Task[int]] = set()
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def pending(self) -> int:
        """Number of datagrams still being processed."""
        return len(self._tasks)

    def connection_made(self, transport: asyncio.DatagramTransport) -> None:  # type: ignore[override]
        """Called when transport is ready."""
        self._transport = transport
        logger.info("UDP listener started", address=transport.get_extra_info("sockname"))

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        """Called when a datagram is received.

        Args:
            data: Raw packet data.
            addr: (host, port) tuple of sender.
        """
        exporter_ip = addr[0]
        logger.debug(
            "Received packet",
            exporter=exporter_ip,
            size=len(data),
        )
        PACKETS_RECEIVED.labels(exporter=exporter_ip).inc()

        task = asyncio.create_task(
            self._handler.handle(data[:MAX_DATAGRAM_SIZE], addr)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def error_received(self, exc: Exception) -> None:
        """Called when a send/receive operation fails."""
        logger.error("UDP receive error", error=str(exc))

    def connection_lost(self, exc: Exception | None) -> None:
        """Called when the connection is lost or closed."""
        if exc:
            logger.error("UDP connection lost", error=str(exc))
        else:
            logger.info("UDP listener stopped")


class FlowReceiver:
    """Owns the listening socket."""

    def __init__(
        self,
        handler: PacketHandler,
        settings: ReceiverSettings | None = None,
    ) -> None:
        """Initialize receiver.

        Args:
            handler: Pipeline run for each datagram.
            settings: Receiver settings.
        """
        self._settings = settings or get_settings().receiver
        self._handler = handler
        self._transport: asyncio.DatagramTransport | None = None
        self._protocol: FlowProtocol | None = None

    @property
    def local_address(self) -> tuple[Any, ...] | None:
        """Bound socket address, once started."""
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")

    @property
    def pending(self) -> int:
        """Number of datagrams still being processed."""
        return self._protocol.pending if self._protocol else 0

    async def start(self) -> None:
        """Bind the socket and start receiving.

        Raises:
            ReceiverStartupError: If the socket cannot be created,
                configured or bound.
        """
        if self._transport is not None:
            return

        loop = asyncio.get_running_loop()
        sock = await self._open_socket(loop)

        self._transport, self._protocol = await loop.create_datagram_endpoint(
            lambda: FlowProtocol(self._handler),
            sock=sock,
        )

    async def stop(self) -> None:
        """Close the socket. Tasks already spawned keep running."""
        if self._transport is None:
            return
        self._transport.close()
        self._transport = None

    async def _open_socket(self, loop: asyncio.AbstractEventLoop) -> socket.socket:
        listen_address = self._settings.listen_address
        try:
            host, port = split_host_port(listen_address)
            infos = await loop.getaddrinfo(
                host,
                port,
                type=socket.SOCK_DGRAM,
                flags=socket.AI_PASSIVE,
            )
        except (ValueError, OSError) as e:
            raise ReceiverStartupError(
                f"cannot resolve listen address {listen_address!r}: {e}",
                cause=e,
            ) from e

        family, sock_type, proto, _, sockaddr = infos[0]
        sock = socket.socket(family, sock_type, proto)
        try:
            sock.setsockopt(
                socket.SOL_SOCKET,
                socket.SO_RCVBUF,
                self._settings.receive_buffer_bytes,
            )
            sock.bind(sockaddr)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise ReceiverStartupError(
                f"cannot listen on {listen_address!r}: {e}",
                details={"receive_buffer_bytes": self._settings.receive_buffer_bytes},
                cause=e,
            ) from e

        logger.info(
            "Listening for NetFlow packets",
            address=listen_address,
            receive_buffer_bytes=self._settings.receive_buffer_bytes,
        )
        return sock
