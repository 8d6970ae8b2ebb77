"""
Roomba Gateway - network bridge to a Roomba on a serial port.

This package runs next to the robot and:
- Accepts command frames over UDP and WebSocket
- Relays Open Interface commands to the robot and returns sensor replies
- Serves camera frames and camera settings as local commands
"""

__version__ = "1.0.0"
