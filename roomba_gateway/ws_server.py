"""
WebSocket server for the persistent-connection transport.

Handles:
- FastAPI WebSocket endpoint at /ws
- Optional Bearer token authentication
- Forwarding each complete frame to the dispatcher callback
- Broadcasting replies and camera frames to every connected client
- /health status endpoint
"""

import logging
from typing import Optional, Callable, Awaitable, Dict

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware

logger = logging.getLogger(__name__)


class WebSocketServer:
    """
    WebSocket server for binary command frames.

    Features:
    - Optional Bearer token authentication
    - No per-client session state; every client sees every broadcast
    - Frame forwarding callback
    """

    def __init__(
        self,
        token: Optional[str] = None,
        on_frame: Optional[Callable[[bytes], Awaitable[None]]] = None,
        status_provider: Optional[Callable[[], dict]] = None,
    ):
        """
        Initialize WebSocket server.

        Args:
            token: Bearer token required from clients; None disables the check
            on_frame: Callback for each received frame
            status_provider: Returns extra fields for /health
        """
        self.token = token
        self.on_frame = on_frame
        self.status_provider = status_provider

        # Connected clients
        self._connected_clients: Dict[str, WebSocket] = {}
        self._client_counter = 0

        # Statistics
        self._total_frames = 0
        self._broadcasts = 0
        self._send_failures = 0

        # FastAPI app
        self.app = FastAPI(title="Roomba Gateway")

        # Add CORS middleware
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Register routes
        self._setup_routes()

    def _setup_routes(self):
        """Set up FastAPI routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check and status endpoint."""
            health = {
                "status": "ok",
                "connected_clients": len(self._connected_clients),
                "total_frames": self._total_frames,
            }
            if self.status_provider:
                health.update(self.status_provider())
            return health

        @self.app.websocket("/ws")
        async def websocket_frames(websocket: WebSocket):
            """WebSocket endpoint for command frames."""
            await self._handle_websocket(websocket)

    async def _handle_websocket(self, websocket: WebSocket) -> None:
        """Handle incoming WebSocket connection."""
        auth_header = websocket.headers.get("authorization", "")
        if self.token and not self._verify_token(auth_header):
            logger.warning(f"Authentication failed from {websocket.client}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()

        self._client_counter += 1
        client_id = f"client_{self._client_counter}"
        self._connected_clients[client_id] = websocket

        logger.info(f"Client connected: {client_id} from {websocket.client}")

        try:
            await self._receive_frames(websocket, client_id)
        except WebSocketDisconnect:
            logger.info(f"Client disconnected: {client_id}")
        except Exception as e:
            logger.error(f"Error handling client {client_id}: {e}")
        finally:
            self._connected_clients.pop(client_id, None)

    def _verify_token(self, auth_header: str) -> bool:
        """Verify Bearer token."""
        if not auth_header:
            return False

        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return False

        return parts[1] == self.token

    async def _receive_frames(self, websocket: WebSocket, client_id: str) -> None:
        """Receive frames from a client, one at a time."""
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            frame = message.get("bytes")
            if frame is None:
                text = message.get("text")
                if text is None:
                    continue
                frame = text.encode("utf-8")

            self._total_frames += 1
            logger.debug(f"Frame from {client_id}: {len(frame)} bytes")

            if self.on_frame:
                try:
                    await self.on_frame(frame)
                except Exception as e:
                    logger.error(f"Error in frame callback: {e}")

    async def broadcast(self, payload: bytes) -> int:
        """
        Send a binary message to every connected client.

        Args:
            payload: Bytes to send

        Returns:
            Number of clients that received it
        """
        self._broadcasts += 1
        delivered = 0
        for client_id, websocket in list(self._connected_clients.items()):
            try:
                await websocket.send_bytes(payload)
                delivered += 1
            except Exception as e:
                self._send_failures += 1
                logger.warning(f"Dropping client {client_id} after send failure: {e}")
                self._connected_clients.pop(client_id, None)
        return delivered

    @property
    def client_count(self) -> int:
        return len(self._connected_clients)

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            "connected_clients": len(self._connected_clients),
            "total_frames": self._total_frames,
            "broadcasts": self._broadcasts,
            "send_failures": self._send_failures,
        }
