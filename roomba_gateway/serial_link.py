"""
Serial link to the Roomba Open Interface port.

Handles:
- Opening the port (device path or pyserial URL such as loop://)
- Byte-at-a-time ordered writes
- Non-blocking reads of whatever the robot has sent
- Draining stale input (boot banner after START)
"""

import asyncio
import logging
import threading
import time
from typing import Optional

import serial

logger = logging.getLogger(__name__)


class SerialLinkError(IOError):
    """Raised when the serial port cannot be opened or used."""


class SerialLink:
    """
    Blocking serial link to the robot.

    The port is opened with timeout=0 so reads never wait; timing of the
    reply window is owned by the caller.
    """

    def __init__(
        self,
        url: str = "/dev/ttyUSB0",
        baudrate: int = 115200,
    ):
        """
        Initialize serial link.

        Args:
            url: Device path or pyserial URL
            baudrate: Serial baud rate (Roomba OI default is 115200)
        """
        self.url = url
        self.baudrate = baudrate

        self._port: Optional[serial.SerialBase] = None
        self._lock = threading.Lock()

        # Statistics
        self._bytes_written = 0
        self._bytes_read = 0
        self._bytes_drained = 0
        self._last_write_time: Optional[float] = None

    def open(self) -> None:
        """Open the serial port."""
        if self._port is not None:
            return

        try:
            logger.info(f"Opening serial link {self.url} @ {self.baudrate} baud")
            self._port = serial.serial_for_url(
                self.url,
                baudrate=self.baudrate,
                timeout=0,
            )
        except serial.SerialException as e:
            logger.error(f"Failed to open serial link {self.url}: {e}")
            raise SerialLinkError(str(e)) from e

    def close(self) -> None:
        """Close the serial port."""
        if self._port is None:
            return

        with self._lock:
            self._port.close()
            self._port = None
        logger.info("Serial link closed")

    @property
    def is_open(self) -> bool:
        return self._port is not None and self._port.is_open

    def _require_port(self) -> serial.SerialBase:
        if self._port is None:
            raise SerialLinkError("serial link is not open")
        return self._port

    def write(self, data: bytes) -> None:
        """
        Write bytes to the robot one at a time, in order.

        Args:
            data: Bytes to relay
        """
        port = self._require_port()
        try:
            with self._lock:
                for value in data:
                    port.write(bytes((value,)))
                port.flush()
        except serial.SerialException as e:
            logger.error(f"Serial write failed: {e}")
            raise SerialLinkError(str(e)) from e

        self._bytes_written += len(data)
        self._last_write_time = time.time()

    def available(self) -> int:
        """Number of bytes waiting in the input buffer."""
        port = self._require_port()
        try:
            return port.in_waiting
        except serial.SerialException as e:
            raise SerialLinkError(str(e)) from e

    def read_available(self, limit: int) -> bytes:
        """
        Read up to `limit` bytes that are already buffered.

        Args:
            limit: Maximum number of bytes to return

        Returns:
            The bytes read, possibly empty
        """
        port = self._require_port()
        try:
            with self._lock:
                waiting = port.in_waiting
                if waiting <= 0 or limit <= 0:
                    return b""
                data = port.read(min(waiting, limit))
        except serial.SerialException as e:
            logger.error(f"Serial read failed: {e}")
            raise SerialLinkError(str(e)) from e

        self._bytes_read += len(data)
        return data

    def drain(self) -> int:
        """
        Discard everything currently buffered on the input side.

        Returns:
            Number of bytes discarded
        """
        port = self._require_port()
        discarded = 0
        try:
            with self._lock:
                while port.in_waiting > 0:
                    discarded += len(port.read(port.in_waiting))
        except serial.SerialException as e:
            raise SerialLinkError(str(e)) from e

        if discarded:
            logger.debug(f"Drained {discarded} stale bytes from serial input")
        self._bytes_drained += discarded
        return discarded

    def get_stats(self) -> dict:
        """Get link statistics."""
        return {
            "url": self.url,
            "open": self.is_open,
            "bytes_written": self._bytes_written,
            "bytes_read": self._bytes_read,
            "bytes_drained": self._bytes_drained,
            "last_write_time": self._last_write_time,
        }


class AsyncSerialLink:
    """
    Async wrapper for SerialLink.

    Runs the blocking port calls in the default executor.
    """

    def __init__(self, link: SerialLink):
        self._link = link

    @classmethod
    def from_url(cls, url: str, baudrate: int = 115200) -> "AsyncSerialLink":
        return cls(SerialLink(url=url, baudrate=baudrate))

    async def open(self) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._link.open)

    async def close(self) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._link.close)

    async def write(self, data: bytes) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._link.write, data)

    async def available(self) -> int:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._link.available)

    async def read_available(self, limit: int) -> bytes:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._link.read_available, limit)

    async def drain(self) -> int:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._link.drain)

    @property
    def is_open(self) -> bool:
        return self._link.is_open

    def get_stats(self) -> dict:
        return self._link.get_stats()
