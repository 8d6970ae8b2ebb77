"""
Gateway configuration from environment variables.

Environment Variables:
    SERIAL_PORT: Robot serial device or pyserial URL (default: /dev/ttyUSB0)
    SERIAL_BAUD: Serial baud rate (default: 115200)
    UDP_HOST / UDP_PORT: Datagram bind address (default: 0.0.0.0:2390)
    HTTP_HOST / HTTP_PORT: WebSocket/HTTP bind address (default: 0.0.0.0:8080)
    SETTLE_MS: Sensor reply settle delay in milliseconds (default: 25)
    CAMERA_SOURCE: Camera index or URL; unset runs without a camera
    GATEWAY_TOKEN: Optional Bearer token for WebSocket clients
    LOG_LEVEL: Logging level (default: INFO)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class GatewayConfig:
    """Runtime configuration for the gateway process."""
    serial_port: str = "/dev/ttyUSB0"
    serial_baud: int = 115200
    udp_host: str = "0.0.0.0"
    udp_port: int = 2390
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    settle_ms: int = 25
    camera_source: Optional[str] = None
    token: Optional[str] = None
    log_level: str = "INFO"

    @property
    def settle_seconds(self) -> float:
        return self.settle_ms / 1000.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "GatewayConfig":
        env = os.environ if env is None else env
        settle_ms = int(env.get("SETTLE_MS", "25"))
        if settle_ms < 0:
            raise ValueError("SETTLE_MS must not be negative")
        return cls(
            serial_port=env.get("SERIAL_PORT", "/dev/ttyUSB0"),
            serial_baud=int(env.get("SERIAL_BAUD", "115200")),
            udp_host=env.get("UDP_HOST", "0.0.0.0"),
            udp_port=int(env.get("UDP_PORT", "2390")),
            http_host=env.get("HTTP_HOST", "0.0.0.0"),
            http_port=int(env.get("HTTP_PORT", "8080")),
            settle_ms=settle_ms,
            camera_source=env.get("CAMERA_SOURCE") or None,
            token=env.get("GATEWAY_TOKEN") or None,
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
