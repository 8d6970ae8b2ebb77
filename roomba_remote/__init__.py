"""
Roomba Remote - client side of the Roomba Gateway.

Sends command frames over UDP or WebSocket and sorts the gateway's
replies into acks, sensor data, camera frames and error sentinels.

NO SERIAL OR CAMERA DEPENDENCIES.
"""

__version__ = "1.0.0"
