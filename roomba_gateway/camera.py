"""
Camera drivers for the capture and configuration commands.

The gateway only needs three things from a camera: reconfigure
(quality, frame size), grab one JPEG, and set the flash level.
"""

import logging
import threading
from typing import Optional, Protocol, Tuple, Union

import cv2
import numpy as np

from .protocol import MAX_QUALITY

logger = logging.getLogger(__name__)

# Frame size codes 0-13, same numbering as the ESP32 camera driver
FRAME_SIZES: Tuple[Tuple[str, int, int], ...] = (
    ("96X96", 96, 96),
    ("QQVGA", 160, 120),
    ("QCIF", 176, 144),
    ("HQVGA", 240, 176),
    ("240X240", 240, 240),
    ("QVGA", 320, 240),
    ("CIF", 400, 296),
    ("HVGA", 480, 320),
    ("VGA", 640, 480),
    ("SVGA", 800, 600),
    ("XGA", 1024, 768),
    ("HD", 1280, 720),
    ("SXGA", 1280, 1024),
    ("UXGA", 1600, 1200),
)

DEFAULT_QUALITY = 12
DEFAULT_FRAME_SIZE = 8  # VGA


class CameraDriver(Protocol):
    def configure(self, quality: int, frame_size: int) -> bool:
        ...

    def capture_one(self) -> Optional[bytes]:
        ...

    def set_illumination_power(self, level: int) -> None:
        ...

    def close(self) -> None:
        ...


def jpeg_quality(quality: int) -> int:
    """
    Map device quality (0-63, lower is better) to OpenCV JPEG quality (1-100).
    """
    quality = max(0, min(MAX_QUALITY, quality))
    return max(1, round(100 - quality * 99 / MAX_QUALITY))


def encode_jpeg(frame: np.ndarray, size: Tuple[int, int], quality: int) -> Optional[bytes]:
    """Resize a BGR frame and encode it as JPEG."""
    if frame is None or frame.size == 0:
        return None
    if (frame.shape[1], frame.shape[0]) != size:
        frame = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)
    ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality(quality)])
    if not ok:
        return None
    return buf.tobytes()


class OpenCVCamera:
    """
    Camera backed by cv2.VideoCapture.

    Source may be a device index or any URL OpenCV can open (RTSP, file).
    """

    def __init__(self, source: Union[int, str] = 0):
        self.source = source
        self._cap: Optional[cv2.VideoCapture] = None
        self._size = FRAME_SIZES[DEFAULT_FRAME_SIZE][1:]
        self._quality = DEFAULT_QUALITY
        self._flash = 0
        self._lock = threading.Lock()

    def configure(self, quality: int, frame_size: int) -> bool:
        """(Re)open the capture source with new settings."""
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None

            self._quality = quality
            _, width, height = FRAME_SIZES[frame_size]
            self._size = (width, height)

            cap = cv2.VideoCapture(self.source)
            if not cap.isOpened():
                logger.warning(f"Camera init failed for source {self.source!r}")
                cap.release()
                return False

            cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            self._cap = cap

        logger.info(
            f"Camera configured: {FRAME_SIZES[frame_size][0]} {width}x{height}, quality {quality}"
        )
        return True

    def capture_one(self) -> Optional[bytes]:
        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
            if not ok:
                logger.debug("Camera read failed")
                return None
            return encode_jpeg(frame, self._size, self._quality)

    def set_illumination_power(self, level: int) -> None:
        # No flash LED on a host camera; keep the value for status
        self._flash = level
        logger.debug(f"Flash level set to {level}")

    def close(self) -> None:
        with self._lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None


class NullCamera:
    """Stand-in when no camera is attached."""

    def configure(self, quality: int, frame_size: int) -> bool:
        return False

    def capture_one(self) -> Optional[bytes]:
        return None

    def set_illumination_power(self, level: int) -> None:
        pass

    def close(self) -> None:
        pass


def create_camera(source: Optional[str]) -> CameraDriver:
    """
    Build a camera driver from a CAMERA_SOURCE style string.

    Args:
        source: None/empty for no camera, digits for a device index,
            anything else is passed to OpenCV as a URL

    Returns:
        Camera driver instance
    """
    if not source:
        logger.info("No camera source configured")
        return NullCamera()
    if source.isdigit():
        return OpenCVCamera(int(source))
    return OpenCVCamera(source)
