"""
Envelope types exchanged over the persistent device/client connection.

Every envelope is a flat JSON object tagged by its ``type`` field. Inbound
envelopes are validated into one of the closed set of models below; outbound
envelopes are built from their own models so field names stay fixed.
"""

from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..exceptions import MessageDecodeError

DeviceId = Annotated[str, Field(min_length=1)]

TOGGLE_PIN = "toggle_pin"


# ==================== INBOUND ====================

class DeviceInfo(BaseModel):
    type: Literal["device_info"]
    id: DeviceId
    # Pin entries stay device-defined; the registry interprets them
    pins: List[Any]
    capabilities: Any = ""


class PinStateUpdate(BaseModel):
    type: Literal["pin_state_update"]
    id: DeviceId
    pinId: Any
    state: Any


class ToggleCommand(BaseModel):
    type: Literal["command"]
    command: Literal["toggle_pin"]
    deviceId: DeviceId
    pinId: Any
    state: Any


class SensorData(BaseModel):
    type: Literal["sensor_data"]
    id: DeviceId
    sensor: Annotated[str, Field(min_length=1)]
    value: Any


InboundEnvelope = Annotated[
    Union[DeviceInfo, PinStateUpdate, ToggleCommand, SensorData],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundEnvelope)


def decode_envelope(raw: Union[str, bytes]) -> Union[DeviceInfo, PinStateUpdate, ToggleCommand, SensorData]:
    """
    Parse and validate one inbound frame.

    Raises:
        MessageDecodeError: bad JSON, unknown ``type``, or missing/invalid fields
    """
    try:
        return _inbound_adapter.validate_json(raw)
    except ValidationError as e:
        raise MessageDecodeError(f"Invalid message format: {e.error_count()} validation error(s)") from e


# ==================== OUTBOUND ====================

class OutboundMessage(BaseModel):
    """Base for hub-to-peer envelopes."""

    omit_none: ClassVar[bool] = False

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=self.omit_none)


class DeviceInfoAck(OutboundMessage):
    type: Literal["device_info_ack"] = "device_info_ack"
    id: str


class DevicesList(OutboundMessage):
    type: Literal["devices_list"] = "devices_list"
    devices: List[Dict[str, Any]]


class PinStateBroadcast(OutboundMessage):
    type: Literal["pin_state_update"] = "pin_state_update"
    deviceId: str
    pinId: Any
    state: Any
    value: bool


class SensorUpdate(OutboundMessage):
    type: Literal["sensor_update"] = "sensor_update"
    deviceId: str
    sensor: str
    value: Any


class CommandForward(OutboundMessage):
    """Command delivered to a device connection."""
    omit_none: ClassVar[bool] = True

    type: Literal["command"] = "command"
    command: str
    pinId: Any = None
    state: Any = None


class CommandAck(OutboundMessage):
    omit_none: ClassVar[bool] = True

    type: Literal["command_ack"] = "command_ack"
    command: str
    deviceId: str
    pinId: Any = None
    state: Any = None
    message: str = "Command sent to device"


class ErrorMessage(OutboundMessage):
    omit_none: ClassVar[bool] = True

    type: Literal["error"] = "error"
    message: str
    command: Optional[str] = None
    deviceId: Optional[str] = None
    pinId: Any = None


INVALID_MESSAGE_FORMAT = ErrorMessage(message="Invalid message format")
