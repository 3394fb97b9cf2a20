"""
Device API endpoints and the persistent WebSocket channel.
"""

import logging
from typing import Any, List

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ..exceptions import DeviceNotConnectedError, DeviceNotFoundError
from ..hub import get_connection_manager, get_message_router
from ..registry import get_device_registry

logger = logging.getLogger(__name__)
router = APIRouter()


class DeviceListResponse(BaseModel):
    devices: List[dict]


class CommandRequest(BaseModel):
    command: str
    pinId: Any = None
    state: Any = None


@router.get("/api/devices", response_model=DeviceListResponse)
async def list_devices():
    """List every device the hub has seen, online or not."""
    registry = get_device_registry()
    return DeviceListResponse(devices=registry.snapshot())


@router.get("/api/devices/{device_id}")
async def get_device(device_id: str):
    """Get a single device, including its latest sensor readings."""
    registry = get_device_registry()
    device = registry.get_device(device_id)

    if not device:
        raise HTTPException(status_code=404, detail="Device not found")

    return {**device.to_client_view(), "status": device.status or {}}


@router.post("/api/devices/{device_id}/command")
async def send_device_command(device_id: str, request: CommandRequest):
    """
    Forward a command to a connected device.

    Returns 404 if the device has never identified itself and 503 if it is
    known but currently offline.
    """
    try:
        await get_message_router().forward_command(
            device_id, request.command, request.pinId, request.state
        )
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    except DeviceNotConnectedError:
        raise HTTPException(status_code=503, detail="Device not connected")

    logger.info(f"Command '{request.command}' sent to {device_id} via REST")
    return {
        "success": True,
        "message": "Command sent to device",
        "deviceId": device_id,
        "command": request.command,
        "pinId": request.pinId,
        "state": request.state,
    }


@router.websocket("/")
@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Persistent channel shared by devices and observers.

    Every connection gets the device snapshot on connect. A connection
    becomes a device once it sends ``device_info``.
    """
    ws_manager = get_connection_manager()
    hub_router = get_message_router()

    session = await hub_router.accept(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            # Binary frames are decoded the same way as text
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await hub_router.handle_message(session, raw)

    except WebSocketDisconnect:
        logger.info(f"Client disconnected: {session.session_id}")
    except Exception as e:
        logger.error(f"Error in WebSocket session {session.session_id}: {e}")
    finally:
        await ws_manager.disconnect(session.session_id)
        await hub_router.on_disconnect(session)
