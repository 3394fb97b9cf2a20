"""
Message router: decodes inbound envelopes, updates the registry and
decides who hears about it.
"""

import logging
from typing import Any, List, Union

from fastapi import WebSocket

from ..exceptions import DeviceNotConnectedError, DeviceNotFoundError, MessageDecodeError
from ..registry import HIGH_STATE, DeviceRegistry, get_device_registry
from .connections import ConnectionManager, Session, get_connection_manager
from .messages import (
    INVALID_MESSAGE_FORMAT,
    TOGGLE_PIN,
    CommandAck,
    CommandForward,
    DeviceInfo,
    DeviceInfoAck,
    DevicesList,
    ErrorMessage,
    PinStateBroadcast,
    PinStateUpdate,
    SensorData,
    SensorUpdate,
    ToggleCommand,
    decode_envelope,
)

logger = logging.getLogger(__name__)


class MessageRouter:
    """Dispatches envelopes from one connection against the shared registry."""

    def __init__(self, registry: DeviceRegistry, connections: ConnectionManager):
        self.registry = registry
        self.connections = connections

    # ==================== CONNECTION LIFECYCLE ====================

    async def accept(self, websocket: WebSocket) -> Session:
        """Open a session whose first message is the current device snapshot."""
        return await self.connections.connect(websocket, initial_message=self.devices_list)

    async def on_disconnect(self, session: Session) -> List[str]:
        """Release the devices the connection owned, then tell everyone still connected."""
        device_ids = self.registry.mark_offline(session.session_id)
        for device_id in device_ids:
            logger.info(f"Device {device_id} disconnected")
        await self.connections.broadcast(self.devices_list())
        return device_ids

    # ==================== INBOUND ====================

    async def handle_message(self, session: Session, raw: Union[str, bytes]) -> None:
        """
        Handle one inbound frame. Never raises: any failure becomes an
        ``error`` envelope to the sender.
        """
        try:
            envelope = decode_envelope(raw)
        except MessageDecodeError as e:
            logger.warning(f"Rejected message from {session.session_id}: {e.reason}")
            await self._reply(session, INVALID_MESSAGE_FORMAT.to_dict())
            return

        logger.debug(f"Received {envelope.type} from {session.session_id}")

        try:
            if isinstance(envelope, DeviceInfo):
                await self._handle_device_info(session, envelope)
            elif isinstance(envelope, PinStateUpdate):
                await self._handle_pin_state_update(session, envelope)
            elif isinstance(envelope, ToggleCommand):
                await self._handle_toggle_command(session, envelope)
            elif isinstance(envelope, SensorData):
                await self._handle_sensor_data(session, envelope)
        except Exception:
            logger.exception(f"Error handling {envelope.type} from {session.session_id}")
            await self._reply(session, INVALID_MESSAGE_FORMAT.to_dict())

    async def _handle_device_info(self, session: Session, msg: DeviceInfo) -> None:
        logger.info(f"Received device info from: {msg.id}")
        self.registry.register(msg.id, msg.pins, msg.capabilities, connection_id=session.session_id)
        session.device_id = msg.id

        await self._reply(session, DeviceInfoAck(id=msg.id).to_dict())
        await self.connections.broadcast(self.devices_list())

    async def _handle_pin_state_update(self, session: Session, msg: PinStateUpdate) -> None:
        logger.info(f"Pin state update from {msg.id}: Pin {msg.pinId} -> {msg.state}")
        if not self.registry.update_pin(msg.id, msg.pinId, msg.state):
            return

        # The reporting device already knows its own state
        update = PinStateBroadcast(
            deviceId=msg.id,
            pinId=msg.pinId,
            state=msg.state,
            value=msg.state == HIGH_STATE,
        )
        await self.connections.broadcast(update.to_dict(), exclude=session.session_id)

    async def _handle_toggle_command(self, session: Session, msg: ToggleCommand) -> None:
        logger.info(f"Command to toggle pin {msg.pinId} of device {msg.deviceId} to {msg.state}")
        try:
            await self.forward_command(msg.deviceId, TOGGLE_PIN, msg.pinId, msg.state)
        except (DeviceNotFoundError, DeviceNotConnectedError) as e:
            error = ErrorMessage(
                message=str(e),
                command=TOGGLE_PIN,
                deviceId=msg.deviceId,
                pinId=msg.pinId,
            )
            await self._reply(session, error.to_dict())
            return

        ack = CommandAck(
            command=TOGGLE_PIN,
            deviceId=msg.deviceId,
            pinId=msg.pinId,
            state=msg.state,
        )
        await self._reply(session, ack.to_dict())

    async def _handle_sensor_data(self, session: Session, msg: SensorData) -> None:
        logger.info(f"Sensor data from {msg.id}: {msg.sensor} = {msg.value}")
        if not self.registry.update_sensor(msg.id, msg.sensor, msg.value):
            return

        update = SensorUpdate(deviceId=msg.id, sensor=msg.sensor, value=msg.value)
        await self.connections.broadcast(update.to_dict())

    # ==================== OUTBOUND ====================

    async def forward_command(self, device_id: str, command: str, pin_id: Any = None, state: Any = None) -> None:
        """
        Deliver a command envelope to a device's connection.

        Raises:
            DeviceNotFoundError: no record for ``device_id``
            DeviceNotConnectedError: record exists but no live connection holds it
        """
        device = self.registry.get_device(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        if device.connection_id is None:
            raise DeviceNotConnectedError(device_id)

        forward = CommandForward(command=command, pinId=pin_id, state=state)
        if not await self.connections.send(device.connection_id, forward.to_dict()):
            raise DeviceNotConnectedError(device_id)

    async def _reply(self, session: Session, message: dict) -> None:
        await self.connections.send(session.session_id, message)

    def devices_list(self) -> dict:
        """``devices_list`` envelope for the current snapshot."""
        return DevicesList(devices=self.registry.snapshot()).to_dict()


def get_message_router() -> MessageRouter:
    """Router bound to the process-wide registry and connection manager."""
    return MessageRouter(get_device_registry(), get_connection_manager())
