"""
UDP client for the gateway's datagram transport.
"""

import asyncio
import logging
from typing import Callable, Optional, Tuple

from .replies import Reply, classify_reply

logger = logging.getLogger(__name__)


class _ReplyProtocol(asyncio.DatagramProtocol):
    def __init__(self, client: "UdpGatewayClient"):
        self.client = client

    def datagram_received(self, data: bytes, addr) -> None:
        self.client._deliver(classify_reply(data))

    def error_received(self, exc: Exception) -> None:
        logger.warning(f"UDP receive error: {exc}")


class UdpGatewayClient:
    """
    Sends frames to the gateway and collects its replies.

    Each frame gets an ack first; sensor queries are followed by a
    second datagram with the reply.
    """

    def __init__(
        self,
        host: str,
        port: int = 2390,
        on_reply: Optional[Callable[[Reply], None]] = None,
    ):
        self.host = host
        self.port = port
        self.on_reply = on_reply
        self.replies: asyncio.Queue = asyncio.Queue()
        self._transport: Optional[asyncio.DatagramTransport] = None
        self.messages_sent = 0

    async def start(self) -> None:
        loop = asyncio.get_event_loop()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _ReplyProtocol(self),
            remote_addr=(self.host, self.port),
        )
        logger.info(f"UDP client ready for {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._transport:
            self._transport.close()
            self._transport = None

    def send(self, frame: bytes) -> None:
        if self._transport is None:
            raise RuntimeError("UDP client is not started")
        logger.debug(f"Sending {len(frame)} bytes: {list(frame)}")
        self._transport.sendto(bytes(frame))
        self.messages_sent += 1

    async def next_reply(self, timeout: float = 1.0) -> Reply:
        """Wait for the next reply; raises asyncio.TimeoutError."""
        return await asyncio.wait_for(self.replies.get(), timeout=timeout)

    def _deliver(self, reply: Reply) -> None:
        logger.debug(f"<- {reply.kind.value} ({len(reply.data)} bytes)")
        self.replies.put_nowait(reply)
        if self.on_reply:
            self.on_reply(reply)


def parse_address(value: str, default_port: int = 2390) -> Tuple[str, int]:
    """Parse host[:port]."""
    host, sep, port = value.strip().rpartition(":")
    if not sep:
        return value.strip(), default_port
    if not host:
        raise ValueError(f"missing host in {value!r}")
    return host, int(port)
