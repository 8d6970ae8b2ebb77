#!/usr/bin/env python3
"""
Roomba Gateway - Main Entry Point

This server bridges network clients to a Roomba on a serial port:
- Relays command frames from UDP and WebSocket clients to the robot
- Returns sensor replies (or a "no reply" sentinel)
- Handles local camera commands (capture, quality, frame size, flash)

See roomba_gateway.config for the environment variables.

Usage:
    export SERIAL_PORT=/dev/ttyUSB0
    python -m roomba_gateway.main
"""

import asyncio
import logging
import signal
import sys
from typing import Optional

import uvicorn

from .camera import CameraDriver, create_camera
from .config import GatewayConfig
from .dispatcher import Dispatcher
from .peripheral import CaptureHandler, PeripheralConfigHandler
from .reply_window import ReplyWindowCollector
from .serial_link import AsyncSerialLink, SerialLinkError
from .udp_server import UdpServer
from .ws_server import WebSocketServer

logger = logging.getLogger(__name__)


class Gateway:
    """
    Main gateway integrating the serial link, camera and both transports.

    Architecture:
        UDP / WebSocket -> Dispatcher -> serial link (robot) | camera
    """

    def __init__(
        self,
        config: GatewayConfig,
        link: Optional[AsyncSerialLink] = None,
        camera: Optional[CameraDriver] = None,
    ):
        """
        Initialize gateway.

        Args:
            config: Runtime configuration
            link: Serial link override (default: built from config)
            camera: Camera driver override (default: built from config)
        """
        self.config = config
        self.link = link or AsyncSerialLink.from_url(config.serial_port, config.serial_baud)
        self.camera = camera or create_camera(config.camera_source)

        self.config_handler = PeripheralConfigHandler(self.camera)
        self.dispatcher = Dispatcher(
            link=self.link,
            collector=ReplyWindowCollector(self.link, settle_seconds=config.settle_seconds),
            config_handler=self.config_handler,
            capture_handler=CaptureHandler(self.camera),
        )

        self.ws_server = WebSocketServer(
            token=config.token,
            on_frame=self._on_ws_frame,
            status_provider=self.get_stats,
        )
        self.udp_server: Optional[UdpServer] = None

        self._running = False

    async def start(self) -> None:
        """Start all gateway components."""
        logger.info("Starting Roomba Gateway...")

        await self.link.open()
        # Robot may have printed a banner before we were listening
        await self.link.drain()

        if await self.config_handler.reinitialize():
            logger.info("Camera ready")
        else:
            logger.warning("Camera not available, capture requests will report an error")

        self.udp_server = UdpServer(
            self.dispatcher,
            host=self.config.udp_host,
            port=self.config.udp_port,
            broadcast=self.ws_server.broadcast,
        )
        await self.udp_server.start()

        self._running = True
        logger.info(f"Roomba Gateway started, HTTP on {self.config.http_host}:{self.config.http_port}")

    async def stop(self) -> None:
        """Stop all gateway components."""
        logger.info("Stopping Roomba Gateway...")
        self._running = False

        if self.udp_server:
            await self.udp_server.stop()
            self.udp_server = None

        await self.link.close()

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self.camera.close)

        logger.info("Roomba Gateway stopped")

    async def _on_ws_frame(self, frame: bytes) -> None:
        """Handle a frame from a WebSocket client; results go to every client."""
        result = await self.dispatcher.handle(frame)
        if result.reply:
            await self.ws_server.broadcast(result.reply)
        if result.broadcast is not None:
            await self.ws_server.broadcast(result.broadcast)

    def get_app(self):
        """Get the FastAPI application for uvicorn."""
        return self.ws_server.app

    def get_stats(self) -> dict:
        """Get gateway statistics."""
        return {
            "running": self._running,
            "serial": self.link.get_stats(),
            "dispatcher": self.dispatcher.get_stats(),
            "ws_server": self.ws_server.get_stats(),
            "udp_server": self.udp_server.get_stats() if self.udp_server else {},
        }


async def run_server(gateway: Gateway) -> None:
    """Run the HTTP/WebSocket app with uvicorn."""
    config = uvicorn.Config(
        gateway.get_app(),
        host=gateway.config.http_host,
        port=gateway.config.http_port,
        log_level=gateway.config.log_level.lower(),
        access_log=False,
    )
    server = uvicorn.Server(config)
    await server.serve()


async def main_async(config: GatewayConfig) -> None:
    """Async main entry point."""
    gateway = Gateway(config)

    loop = asyncio.get_event_loop()

    shutdown_event = asyncio.Event()

    def signal_handler():
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await gateway.start()
    except SerialLinkError as e:
        logger.error(f"Cannot start without the serial link: {e}")
        sys.exit(1)

    try:
        server_task = asyncio.create_task(run_server(gateway))
        shutdown_task = asyncio.create_task(shutdown_event.wait())

        done, pending = await asyncio.wait(
            [server_task, shutdown_task],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    except Exception as e:
        logger.error(f"Server error: {e}")
    finally:
        await gateway.stop()


def main() -> None:
    """Main entry point."""
    config = GatewayConfig.from_env()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        asyncio.run(main_async(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
