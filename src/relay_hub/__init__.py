"""
Device Relay Hub - real-time relay between IoT devices and observer clients.

This service handles:
- WebSocket connections from devices and observers
- The in-memory device registry (pins, sensors, connectivity)
- Routing of pin updates, sensor data and commands
- REST access to the device list and device commands
"""

__version__ = "1.0.0"

from .main import main, app

__all__ = ["main", "app"]
