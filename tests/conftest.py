"""
Shared fixtures: an in-memory robot link and a scriptable camera.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from roomba_gateway.dispatcher import Dispatcher
from roomba_gateway.peripheral import CaptureHandler, PeripheralConfigHandler
from roomba_gateway.reply_window import ReplyWindowCollector

FAKE_JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 60 + b"\xff\xd9"


class FakeLink:
    """
    Stand-in for AsyncSerialLink.

    `responses` maps an opcode to the bytes the robot puts on the wire after
    that command is written. `events` records every call in order.
    """

    def __init__(self, responses: Optional[Dict[int, bytes]] = None):
        self.responses = dict(responses or {})
        self.written = bytearray()
        self.writes: List[bytes] = []
        self.events: List[Tuple[str, bytes]] = []
        self.rx = bytearray()
        self.opened = False
        self.write_delay = 0.0

    def feed(self, data: bytes) -> None:
        self.rx.extend(data)

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.opened = False

    async def write(self, data: bytes) -> None:
        self.events.append(("write", bytes(data)))
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        self.written.extend(data)
        self.writes.append(bytes(data))
        response = self.responses.get(data[0]) if data else None
        if response:
            self.rx.extend(response)

    async def available(self) -> int:
        return len(self.rx)

    async def read_available(self, limit: int) -> bytes:
        data = bytes(self.rx[:limit])
        del self.rx[:limit]
        self.events.append(("read", data))
        return data

    async def drain(self) -> int:
        count = len(self.rx)
        self.rx.clear()
        self.events.append(("drain", b""))
        return count

    @property
    def is_open(self) -> bool:
        return self.opened

    def get_stats(self) -> dict:
        return {"open": self.opened, "bytes_written": len(self.written)}


class FakeCamera:
    def __init__(self, image: Optional[bytes] = FAKE_JPEG, configure_ok: bool = True):
        self.image = image
        self.configure_ok = configure_ok
        self.configure_calls: List[Tuple[int, int]] = []
        self.capture_calls = 0
        self.flash_levels: List[int] = []
        self.closed = False

    def configure(self, quality: int, frame_size: int) -> bool:
        self.configure_calls.append((quality, frame_size))
        return self.configure_ok

    def capture_one(self) -> Optional[bytes]:
        self.capture_calls += 1
        return self.image

    def set_illumination_power(self, level: int) -> None:
        self.flash_levels.append(level)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_link():
    return FakeLink(responses={142: b"\x01\x02"})


@pytest.fixture
def fake_camera():
    return FakeCamera()


@pytest.fixture
def dispatcher(fake_link, fake_camera):
    return Dispatcher(
        link=fake_link,
        collector=ReplyWindowCollector(fake_link, settle_seconds=0.001),
        config_handler=PeripheralConfigHandler(fake_camera),
        capture_handler=CaptureHandler(fake_camera),
    )
