"""
Health API endpoints for the Device Relay Hub.
"""

from fastapi import APIRouter

from .. import __version__
from ..config import get_config
from ..hub import get_connection_manager
from ..registry import get_device_registry

router = APIRouter()


@router.get("/health")
async def health():
    """Basic health check endpoint."""
    registry = get_device_registry()
    ws_manager = get_connection_manager()

    return {
        "status": "healthy",
        "service": "device-relay-hub",
        "version": __version__,
        "websocket_connections": ws_manager.online_count,
        "devices": registry.get_device_stats(),
    }


@router.get("/api")
async def root():
    """Service information."""
    config = get_config()
    ws_manager = get_connection_manager()

    return {
        "service": "Device Relay Hub",
        "version": __version__,
        "description": "Real-time relay between IoT devices and observer clients",
        "port": config.port,
        "sessions": ws_manager.get_all_sessions(),
        "endpoints": {
            "devices": "/api/devices",
            "device_detail": "/api/devices/{id}",
            "command": "/api/devices/{id}/command",
            "websocket": ["/", "/ws"],
            "health": "/health",
        },
    }
