"""
Reply window for sensor queries.

After a sensor query is written the robot needs a moment to answer. The
collector waits a fixed settle delay, then takes whatever bytes arrived
in a single pass.
"""

import asyncio
import logging

from .protocol import NO_RESPONSE, REPLY_CAPACITY

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_SECONDS = 0.025


class ReplyWindowCollector:
    """Settle-then-drain reader producing the Reply Buffer for a sensor query."""

    def __init__(
        self,
        link,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        capacity: int = REPLY_CAPACITY,
    ):
        """
        Args:
            link: AsyncSerialLink (or anything with the same coroutines)
            settle_seconds: Wait between the write and the read
            capacity: Reply Buffer size, including the packet id byte
        """
        if capacity < 2:
            raise ValueError("capacity must leave room for at least one data byte")
        self.link = link
        self.settle_seconds = settle_seconds
        self.capacity = capacity

        self._windows = 0
        self._empty_windows = 0
        self._overflows = 0

    async def collect(self, group_id: int) -> bytes:
        """
        Wait for the settle delay and assemble the reply.

        Args:
            group_id: Sensor packet id from the request, echoed as first byte

        Returns:
            bytes([group_id]) + data, or NO_RESPONSE if nothing arrived
        """
        self._windows += 1
        await asyncio.sleep(self.settle_seconds)

        data = await self.link.read_available(self.capacity - 1)

        # Anything past capacity would corrupt the next reply
        if len(data) == self.capacity - 1 and await self.link.available() > 0:
            dropped = await self.link.drain()
            self._overflows += 1
            logger.warning(
                f"Sensor reply for packet {group_id} exceeded {self.capacity} bytes, "
                f"dropped {dropped} bytes"
            )

        if not data:
            self._empty_windows += 1
            logger.debug(f"No reply from robot for sensor packet {group_id}")
            return NO_RESPONSE

        return bytes((group_id & 0xFF,)) + data

    def get_stats(self) -> dict:
        return {
            "windows": self._windows,
            "empty_windows": self._empty_windows,
            "overflows": self._overflows,
        }
