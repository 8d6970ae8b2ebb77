"""
Local camera commands: parameter changes and single-frame capture.

Handles:
- Range checks on quality (0-63) and frame size (0-13)
- Camera reinitialization after an accepted change
- Flash level passthrough
- Capture with a sentinel payload on failure
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

from .camera import DEFAULT_FRAME_SIZE, DEFAULT_QUALITY, CameraDriver
from .protocol import FRAME_BUFFER_ERROR, MAX_FRAME_SIZE, MAX_QUALITY, ConfigKind

logger = logging.getLogger(__name__)


@dataclass
class PeripheralState:
    """Current camera settings, shared by config and reinit."""
    quality: int = DEFAULT_QUALITY
    frame_size: int = DEFAULT_FRAME_SIZE
    flash: int = 0


class ConfigOutcome(Enum):
    APPLIED = "applied"
    REJECTED = "rejected"
    REINIT_FAILED = "reinit_failed"


class PeripheralConfigHandler:
    """
    Applies camera parameter changes.

    Out-of-range values leave the state untouched. Nothing is sent back to
    the client; outcomes are logged and kept for the status endpoint.
    """

    def __init__(self, camera: CameraDriver, state: Optional[PeripheralState] = None):
        """
        Initialize handler.

        Args:
            camera: Driver to reconfigure
            state: Initial settings (defaults: quality 12, VGA, flash off)
        """
        self.camera = camera
        self.state = state or PeripheralState()

        self._applied = 0
        self._rejected = 0
        self._reinit_failures = 0
        self.last_error: Optional[str] = None

    async def apply(self, kind: ConfigKind, value: int) -> ConfigOutcome:
        """
        Apply one parameter change.

        Args:
            kind: Which parameter
            value: Raw parameter byte from the frame

        Returns:
            What happened to the change
        """
        if kind is ConfigKind.FLASH:
            level = value & 0xFF
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, self.camera.set_illumination_power, level)
            self.state.flash = level
            self._applied += 1
            return ConfigOutcome.APPLIED

        if kind is ConfigKind.QUALITY:
            if value > MAX_QUALITY:
                return self._reject(f"quality {value} out of range 0-{MAX_QUALITY}")
            self.state.quality = value
        elif kind is ConfigKind.FRAME_SIZE:
            if value > MAX_FRAME_SIZE:
                return self._reject(f"frame size {value} out of range 0-{MAX_FRAME_SIZE}")
            self.state.frame_size = value

        if not await self.reinitialize():
            self._reinit_failures += 1
            self.last_error = f"camera reinit failed after {kind.value}={value}"
            logger.warning(self.last_error)
            return ConfigOutcome.REINIT_FAILED

        self._applied += 1
        return ConfigOutcome.APPLIED

    async def reinitialize(self) -> bool:
        """Push the current state to the camera."""
        loop = asyncio.get_event_loop()
        try:
            return bool(await loop.run_in_executor(
                None, self.camera.configure, self.state.quality, self.state.frame_size
            ))
        except Exception as e:
            logger.error(f"Camera configure raised: {e}")
            return False

    def _reject(self, reason: str) -> ConfigOutcome:
        self._rejected += 1
        self.last_error = reason
        logger.debug(f"Ignoring config change: {reason}")
        return ConfigOutcome.REJECTED

    def get_stats(self) -> dict:
        return {
            "state": asdict(self.state),
            "applied": self._applied,
            "rejected": self._rejected,
            "reinit_failures": self._reinit_failures,
            "last_error": self.last_error,
        }


class CaptureHandler:
    """Single-attempt frame grab."""

    def __init__(self, camera: CameraDriver):
        self.camera = camera
        self._captures = 0
        self._failures = 0

    async def capture(self) -> bytes:
        """
        Grab one frame.

        Returns:
            JPEG bytes, or FRAME_BUFFER_ERROR if the camera had no frame
        """
        loop = asyncio.get_event_loop()
        try:
            image = await loop.run_in_executor(None, self.camera.capture_one)
        except Exception as e:
            logger.error(f"Camera capture raised: {e}")
            image = None

        if not image:
            self._failures += 1
            logger.debug("Error getting frame buffer")
            return FRAME_BUFFER_ERROR

        self._captures += 1
        logger.debug(f"Captured {len(image)} byte frame")
        return bytes(image)

    def get_stats(self) -> dict:
        return {"captures": self._captures, "failures": self._failures}
