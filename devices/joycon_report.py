"""Joy-Con input report parsing

Three pure helpers drive a session:

- ``decode_report`` turns a raw 0x30/0x3F report into an ``InputReport``
- ``stick_angle`` turns a raw 12-bit stick pair into degrees (or None at rest)
- ``detect_edges`` compares two button byte triples and yields transitions

None of them raise on device input; anything unrecognised is just "no event".
"""
import logging
import math
from typing import List, NamedTuple, Optional, Tuple

from core.state import ButtonAction, ButtonMessage, ControllerSide
from devices.joycon_layout import (
    BUTTON_BYTES_OFFSET,
    BUTTON_LAYOUTS,
    FULL_REPORT_IDS,
    LEFT_STICK_OFFSET,
    MIN_REPORT_LENGTH,
    RIGHT_STICK_OFFSET,
    STICK_CENTER,
    STICK_DEADZONE,
)

LOG = logging.getLogger("joybridge.report")

NO_BUTTONS = bytes(3)


class InputReport(NamedTuple):
    report_id: int
    buttons: bytes  # report bytes 3, 4, 5
    left_stick: Tuple[int, int]
    right_stick: Tuple[int, int]

    def stick_for(self, side: ControllerSide) -> Tuple[int, int]:
        return self.left_stick if side is ControllerSide.L else self.right_stick


def _unpack_stick(b0, b1, b2):
    # two 12-bit little-endian axes packed into three bytes
    x = b0 | ((b1 & 0x0F) << 8)
    y = (b1 >> 4) | (b2 << 4)
    return x, y


def decode_report(data) -> Optional[InputReport]:
    if not data or len(data) < MIN_REPORT_LENGTH:
        LOG.debug("Skipping short/empty report: %s", data)
        return None
    if data[0] not in FULL_REPORT_IDS:
        return None

    buttons = bytes(data[BUTTON_BYTES_OFFSET:BUTTON_BYTES_OFFSET + 3])
    left = _unpack_stick(*data[LEFT_STICK_OFFSET:LEFT_STICK_OFFSET + 3])
    right = _unpack_stick(*data[RIGHT_STICK_OFFSET:RIGHT_STICK_OFFSET + 3])
    return InputReport(data[0], buttons, left, right)


def stick_angle(x: int, y: int, center: int = STICK_CENTER, deadzone: int = STICK_DEADZONE) -> Optional[int]:
    """Angle of the stick in whole degrees, 0..359, or None inside the deadzone."""
    dx = x - center
    dy = y - center
    if math.hypot(dx, dy) <= deadzone:
        return None
    angle = math.degrees(math.atan2(dy, dx)) % 360.0
    # round half up, then fold 359.5+ back onto 0
    return int(math.floor(angle + 0.5)) % 360


def detect_edges(side: ControllerSide, current, previous=NO_BUTTONS) -> List[ButtonMessage]:
    events = []
    for index, mask, key in BUTTON_LAYOUTS[side]:
        now = bool(current[index] & mask)
        before = bool(previous[index] & mask)
        if now and not before:
            events.append(ButtonMessage(key, ButtonAction.PRESS))
        elif before and not now:
            events.append(ButtonMessage(key, ButtonAction.RELEASE))
    return events
