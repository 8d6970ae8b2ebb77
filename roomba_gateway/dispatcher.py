"""
Command dispatcher between the network transports and the robot.

Every inbound frame, from either transport, goes through Dispatcher.handle().
One transaction runs at a time; later frames wait on the lock in arrival
order so writes to the serial link never interleave.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .peripheral import CaptureHandler, ConfigOutcome, PeripheralConfigHandler
from .protocol import (
    NO_RESPONSE,
    Capture,
    Command,
    MalformedFrame,
    PassThrough,
    PeripheralConfig,
    classify,
    describe,
)
from .reply_window import ReplyWindowCollector

logger = logging.getLogger(__name__)


class TransactionState(Enum):
    IDLE = "idle"
    WRITTEN = "written"
    FLUSHING = "flushing"
    AWAITING_WINDOW = "awaiting_window"
    DONE = "done"


@dataclass
class DispatchResult:
    """
    Outcome of one inbound frame.

    Attributes:
        command: Classified command, None if the frame was malformed
        reply: Reply Buffer for the originating transport (sensor queries)
        broadcast: Capture payload for all WebSocket clients
        config_outcome: Result of a camera parameter change
        error: Reason the frame was dropped
    """
    command: Optional[Command] = None
    reply: Optional[bytes] = None
    broadcast: Optional[bytes] = None
    config_outcome: Optional[ConfigOutcome] = None
    error: Optional[str] = None


class Dispatcher:
    """
    Classifies frames and runs them against the robot or the camera.

    Features:
    - Pass-through relay with boot banner flush after START
    - Sensor query reply window with "no reply" sentinel
    - Local camera commands that never reach the robot
    """

    def __init__(
        self,
        link,
        collector: ReplyWindowCollector,
        config_handler: PeripheralConfigHandler,
        capture_handler: CaptureHandler,
    ):
        """
        Initialize dispatcher.

        Args:
            link: AsyncSerialLink to the robot
            collector: Reply window collector bound to the same link
            config_handler: Camera parameter handler
            capture_handler: Camera capture handler
        """
        self.link = link
        self.collector = collector
        self.config_handler = config_handler
        self.capture_handler = capture_handler

        self._lock = asyncio.Lock()
        self.state = TransactionState.IDLE

        # Statistics
        self._frames = 0
        self._malformed = 0
        self._replies = 0
        self._no_response = 0
        self._errors = 0

    async def handle(self, frame: bytes) -> DispatchResult:
        """
        Run one frame to completion.

        Args:
            frame: Complete inbound frame

        Returns:
            DispatchResult describing what to send back, if anything
        """
        self._frames += 1
        try:
            command = classify(frame)
        except MalformedFrame as e:
            self._malformed += 1
            logger.warning(f"Dropping malformed frame: {e}")
            return DispatchResult(error=str(e))

        async with self._lock:
            try:
                if isinstance(command, PassThrough):
                    return await self._relay(command)
                if isinstance(command, Capture):
                    payload = await self.capture_handler.capture()
                    return DispatchResult(command=command, broadcast=payload)
                if isinstance(command, PeripheralConfig):
                    outcome = await self.config_handler.apply(command.kind, command.value)
                    return DispatchResult(command=command, config_outcome=outcome)
                raise TypeError(f"unhandled command {command!r}")
            except Exception as e:
                self._errors += 1
                logger.error(f"Error dispatching frame [{describe(frame)}]: {e}")
                return DispatchResult(command=command, error=str(e))
            finally:
                self.state = TransactionState.IDLE

    async def _relay(self, command: PassThrough) -> DispatchResult:
        """Write a pass-through command and collect the reply if one is expected."""
        logger.debug(f"-> robot [{describe(command.data)}]")
        await self.link.write(command.data)
        self.state = TransactionState.WRITTEN

        if command.is_start:
            # Robot prints its firmware banner on START; keep it out of sensor replies
            self.state = TransactionState.FLUSHING
            await self.link.drain()
            self.state = TransactionState.DONE
            return DispatchResult(command=command)

        if command.is_sensor_query:
            self.state = TransactionState.AWAITING_WINDOW
            reply = await self.collector.collect(command.data[1])
            self.state = TransactionState.DONE
            self._replies += 1
            if reply == NO_RESPONSE:
                self._no_response += 1
            else:
                logger.debug(f"<- robot [{describe(reply)}]")
            return DispatchResult(command=command, reply=reply)

        self.state = TransactionState.DONE
        return DispatchResult(command=command)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def get_stats(self) -> dict:
        """Get dispatcher statistics."""
        return {
            "state": self.state.value,
            "busy": self.busy,
            "frames": self._frames,
            "malformed": self._malformed,
            "replies": self._replies,
            "no_response": self._no_response,
            "errors": self._errors,
            "reply_window": self.collector.get_stats(),
            "camera": self.config_handler.get_stats(),
            "capture": self.capture_handler.get_stats(),
        }
