"""JSON wire format shared by the bridge server and its clients.

One message per WebSocket text frame:

  {"type": "button", "button": "A", "action": "press", "joycon": "R"}
  {"type": "joystick", "stick": "left", "angle": 90, "joycon": "L"}
"""
import json

from core.state import (
    ButtonAction,
    ButtonKey,
    ButtonMessage,
    ControllerSide,
    JoystickMessage,
    TransportMessage,
)


class ProtocolError(ValueError):
    """Raised when an inbound frame is not a valid bridge message."""


def to_wire(message: TransportMessage) -> dict:
    if isinstance(message, ButtonMessage):
        return {
            "type": "button",
            "button": message.button.name,
            "action": message.action.value,
            "joycon": message.button.side.value,
        }
    if isinstance(message, JoystickMessage):
        return {
            "type": "joystick",
            "stick": message.side.stick,
            "angle": message.angle,
            "joycon": message.side.value,
        }
    raise TypeError(f"not a transport message: {message!r}")


def encode_message(message: TransportMessage) -> str:
    return json.dumps(to_wire(message), separators=(",", ":"))


def from_wire(data: dict) -> TransportMessage:
    if not isinstance(data, dict):
        raise ProtocolError(f"expected a JSON object, got {type(data).__name__}")
    kind = data.get("type")
    try:
        if kind == "button":
            side = ControllerSide(data.get("joycon"))
            key = ButtonKey(data.get("button"), side)
            return ButtonMessage(key, ButtonAction(data.get("action")))
        if kind == "joystick":
            # the stick field decides which angle slot the sample lands in
            side = ControllerSide.from_stick(data.get("stick"))
            angle = data.get("angle")
            if isinstance(angle, bool) or not isinstance(angle, int) or not 0 <= angle < 360:
                raise ProtocolError(f"angle out of range: {angle!r}")
            return JoystickMessage(side, angle)
    except ProtocolError:
        raise
    except (TypeError, ValueError) as e:
        raise ProtocolError(str(e)) from e
    raise ProtocolError(f"unknown message type: {kind!r}")


def decode_message(raw) -> TransportMessage:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        raise ProtocolError(f"invalid JSON: {e}") from e
    return from_wire(data)
