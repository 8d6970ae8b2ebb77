"""
UDP server for the datagram transport.

Every datagram is acknowledged immediately with "ack" plus the received
length byte. Sensor replies go back to the sender as a second datagram;
camera frames go to the WebSocket broadcast.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set, Tuple

from .dispatcher import Dispatcher
from .protocol import MAX_FRAME_LEN, ack_frame

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class UdpCommandProtocol(asyncio.DatagramProtocol):
    """Datagram protocol feeding the dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        broadcast: Optional[Callable[[bytes], Awaitable[int]]] = None,
    ):
        """
        Args:
            dispatcher: Shared dispatcher
            broadcast: Coroutine delivering capture payloads to WebSocket clients
        """
        self.dispatcher = dispatcher
        self.broadcast = broadcast
        self.transport: Optional[asyncio.DatagramTransport] = None
        self._tasks: Set[asyncio.Task] = set()

        self._datagrams = 0
        self._replies_sent = 0

    def connection_made(self, transport) -> None:
        self.transport = transport

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc:
            logger.warning(f"UDP endpoint closed with error: {exc}")
        self.transport = None

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"UDP error: {exc}")

    def datagram_received(self, data: bytes, addr: Address) -> None:
        if self.transport is None:
            return

        self._datagrams += 1
        frame = data[:MAX_FRAME_LEN]
        self.transport.sendto(ack_frame(len(frame)), addr)

        task = asyncio.ensure_future(self._process(frame, addr))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process(self, frame: bytes, addr: Address) -> None:
        result = await self.dispatcher.handle(frame)

        if result.reply and self.transport is not None:
            self.transport.sendto(result.reply, addr)
            self._replies_sent += 1

        if result.broadcast is not None and self.broadcast:
            try:
                await self.broadcast(result.broadcast)
            except Exception as e:
                logger.error(f"Broadcast of capture failed: {e}")

    async def wait_idle(self) -> None:
        """Wait for all in-flight datagrams to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def get_stats(self) -> dict:
        return {
            "datagrams": self._datagrams,
            "replies_sent": self._replies_sent,
            "in_flight": len(self._tasks),
        }


class UdpServer:
    """Owns the datagram endpoint."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        host: str = "0.0.0.0",
        port: int = 2390,
        broadcast: Optional[Callable[[bytes], Awaitable[int]]] = None,
    ):
        self.host = host
        self.port = port
        self.protocol = UdpCommandProtocol(dispatcher, broadcast=broadcast)
        self._transport: Optional[asyncio.DatagramTransport] = None

    async def start(self) -> None:
        """Bind the UDP socket."""
        loop = asyncio.get_event_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: self.protocol,
            local_addr=(self.host, self.port),
        )
        logger.info(f"UDP listening on {self.local_address[0]}:{self.local_address[1]}")

    async def stop(self) -> None:
        """Close the socket after in-flight datagrams complete."""
        if self._transport is None:
            return
        await self.protocol.wait_idle()
        self._transport.close()
        self._transport = None
        logger.info("UDP server stopped")

    @property
    def local_address(self) -> Address:
        if self._transport is None:
            return (self.host, self.port)
        return self._transport.get_extra_info("sockname")[:2]

    def get_stats(self) -> dict:
        return self.protocol.get_stats()
