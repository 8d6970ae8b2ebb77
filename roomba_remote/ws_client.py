"""
WebSocket Client for the gateway's persistent-connection transport.

Handles:
- Async WebSocket connection with optional Bearer token auth
- Exponential backoff reconnection
- Message queue for decoupled sending
- Classification of broadcast replies and camera frames
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Callable, Awaitable

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from .replies import Reply, classify_reply

logger = logging.getLogger(__name__)


@dataclass
class ConnectionStats:
    """Statistics about WebSocket connection."""
    connected: bool = False
    connect_time: Optional[float] = None
    disconnect_time: Optional[float] = None
    reconnect_attempts: int = 0
    messages_sent: int = 0
    messages_failed: int = 0
    messages_received: int = 0
    last_send_time: Optional[float] = None


class WebSocketGatewayClient:
    """
    Async WebSocket client with automatic reconnection.

    Features:
    - Optional Bearer token authentication
    - Exponential backoff on connection failure (1s -> 30s max)
    - Non-blocking frame sending via queue
    - Every broadcast from the gateway is classified and queued
    """

    def __init__(
        self,
        server_url: str,
        token: Optional[str] = None,
        max_backoff_seconds: float = 30.0,
        initial_backoff_seconds: float = 1.0,
        on_reply: Optional[Callable[[Reply], Awaitable[None]]] = None,
    ):
        """
        Initialize WebSocket client.

        Args:
            server_url: Gateway URL (e.g., ws://192.168.1.20:8080/ws)
            token: Bearer token, if the gateway requires one
            max_backoff_seconds: Maximum backoff time between reconnect attempts
            initial_backoff_seconds: Initial backoff time
            on_reply: Callback for each message from the gateway
        """
        self.server_url = server_url
        self.token = token
        self.max_backoff = max_backoff_seconds
        self.initial_backoff = initial_backoff_seconds
        self.on_reply = on_reply

        # Connection state
        self._ws: Optional[ClientConnection] = None
        self._connected = False
        self._running = False

        # Queues
        self._send_queue: asyncio.Queue = asyncio.Queue(maxsize=100)
        self.replies: asyncio.Queue = asyncio.Queue()

        self.stats = ConnectionStats()
        self._current_backoff = initial_backoff_seconds

        # Tasks
        self._connect_task: Optional[asyncio.Task] = None
        self._send_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        """Check if currently connected."""
        return self._connected and self._ws is not None

    async def start(self) -> None:
        """Start the client and connection tasks."""
        if self._running:
            return

        self._running = True
        self._connect_task = asyncio.create_task(self._connection_loop())
        self._send_task = asyncio.create_task(self._send_loop())

        logger.info(f"WebSocket client started, connecting to {self.server_url}")

    async def wait_connected(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while not self.connected:
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(0.05)
        return True

    async def stop(self) -> None:
        """Stop the client."""
        if not self._running:
            return

        logger.info("WebSocket client stopping...")
        self._running = False

        # Signal send loop to exit
        await self._send_queue.put(None)

        for task in (self._connect_task, self._send_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        if self._ws:
            await self._ws.close()
            self._ws = None

        self._connected = False
        logger.info("WebSocket client stopped")

    def send(self, frame: bytes) -> bool:
        """
        Queue a frame for sending.

        Non-blocking. Returns False if queue is full.
        """
        try:
            self._send_queue.put_nowait(bytes(frame))
            return True
        except asyncio.QueueFull:
            self.stats.messages_failed += 1
            logger.warning("Send queue full, dropping frame")
            return False

    async def next_reply(self, timeout: float = 1.0) -> Reply:
        """Wait for the next message from the gateway; raises asyncio.TimeoutError."""
        return await asyncio.wait_for(self.replies.get(), timeout=timeout)

    async def _connection_loop(self) -> None:
        """Main connection loop with automatic reconnection."""
        while self._running:
            try:
                await self._connect()
                self._current_backoff = self.initial_backoff
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Connection error: {e}")

            if not self._running:
                break

            logger.info(f"Reconnecting in {self._current_backoff:.1f}s...")
            await asyncio.sleep(self._current_backoff)

            self._current_backoff = min(self._current_backoff * 2, self.max_backoff)
            self.stats.reconnect_attempts += 1

    async def _connect(self) -> None:
        """Establish WebSocket connection and read until it closes."""
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            logger.info(f"Connecting to {self.server_url}...")

            self._ws = await connect(
                self.server_url,
                additional_headers=headers,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
            )

            self._connected = True
            self.stats.connected = True
            self.stats.connect_time = time.time()
            logger.info("WebSocket connected successfully")

            try:
                async for message in self._ws:
                    if isinstance(message, str):
                        message = message.encode("utf-8")
                    await self._deliver(classify_reply(message, expect_ack=False))
            except ConnectionClosed:
                pass

        except InvalidStatus as e:
            logger.error(f"Connection rejected: {e.response.status_code}")
            raise
        except ConnectionRefusedError:
            logger.error("Connection refused - is the gateway running?")
            raise
        finally:
            self._connected = False
            self._ws = None
            self.stats.connected = False
            self.stats.disconnect_time = time.time()

    async def _deliver(self, reply: Reply) -> None:
        self.stats.messages_received += 1
        logger.debug(f"<- {reply.kind.value} ({len(reply.data)} bytes)")
        await self.replies.put(reply)
        if self.on_reply:
            await self.on_reply(reply)

    async def _send_loop(self) -> None:
        """Process outgoing frame queue."""
        while self._running:
            try:
                frame = await self._send_queue.get()

                # None is shutdown signal
                if frame is None:
                    break

                if self.connected:
                    try:
                        await self._ws.send(frame)
                        self.stats.messages_sent += 1
                        self.stats.last_send_time = time.time()
                    except (ConnectionClosed, WebSocketException) as e:
                        self.stats.messages_failed += 1
                        logger.warning(f"Send failed: {e}")
                else:
                    self.stats.messages_failed += 1

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Send loop error: {e}")

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "connected": self.connected,
            "connect_time": self.stats.connect_time,
            "disconnect_time": self.stats.disconnect_time,
            "reconnect_attempts": self.stats.reconnect_attempts,
            "messages_sent": self.stats.messages_sent,
            "messages_failed": self.stats.messages_failed,
            "messages_received": self.stats.messages_received,
            "queue_size": self._send_queue.qsize(),
        }
