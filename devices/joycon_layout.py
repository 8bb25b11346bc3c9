"""Joy-Con HID identifiers and button bit layouts.

The three button bytes of a full input report sit at offsets 3, 4 and 5.
Byte 3 belongs to the right controller, byte 5 to the left one and byte 4 is
shared. Each table below maps (index into the button bytes, bit mask) to a
button name, in the order transitions are emitted.
"""
from core.state import ButtonKey, ControllerSide

NINTENDO_VID = 0x057E
JOYCON_L_PID = 0x2006
JOYCON_R_PID = 0x2007

PRODUCT_SIDES = {
    JOYCON_L_PID: ControllerSide.L,
    JOYCON_R_PID: ControllerSide.R,
}

# Input report ids carrying full button/stick state
FULL_REPORT_IDS = (0x30, 0x3F)

# Output report 0x01 (rumble + sub-command)
SUBCOMMAND_REPORT_ID = 0x01
RUMBLE_OFF = bytes([0x00, 0x01, 0x40, 0x40, 0x00, 0x01, 0x40, 0x40])
SUBCMD_SET_INPUT_MODE = 0x03
INPUT_MODE_FULL = 0x30  # standard full report, 60 Hz

BUTTON_BYTES_OFFSET = 3
LEFT_STICK_OFFSET = 6
RIGHT_STICK_OFFSET = 9
MIN_REPORT_LENGTH = 12

STICK_CENTER = 2048
STICK_DEADZONE = 300

_RIGHT_TABLE = (
    (0, 0x01, "Y"),
    (0, 0x02, "X"),
    (0, 0x04, "B"),
    (0, 0x08, "A"),
    (0, 0x10, "SR"),
    (0, 0x20, "SL"),
    (0, 0x40, "R"),
    (0, 0x80, "ZR"),
    (1, 0x02, "Plus"),
    (1, 0x04, "RStick"),
    (1, 0x10, "Home"),
)

_LEFT_TABLE = (
    (2, 0x01, "Down"),
    (2, 0x02, "Up"),
    (2, 0x04, "Right"),
    (2, 0x08, "Left"),
    (2, 0x10, "SR"),
    (2, 0x20, "SL"),
    (2, 0x40, "L"),
    (2, 0x80, "ZL"),
    (1, 0x01, "Minus"),
    (1, 0x08, "LStick"),
    (1, 0x20, "Capture"),
)

BUTTON_LAYOUTS = {
    ControllerSide.R: tuple((i, mask, ButtonKey(name, ControllerSide.R)) for i, mask, name in _RIGHT_TABLE),
    ControllerSide.L: tuple((i, mask, ButtonKey(name, ControllerSide.L)) for i, mask, name in _LEFT_TABLE),
}


def side_for_product(product_id):
    """Return the ControllerSide for a Joy-Con product id, or None."""
    return PRODUCT_SIDES.get(product_id)
