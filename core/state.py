"""State models and lightweight DTOs"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union


class ControllerSide(str, Enum):
    L = "L"
    R = "R"

    @property
    def stick(self) -> str:
        """Name of the analog stick this controller carries."""
        return "left" if self is ControllerSide.L else "right"

    @classmethod
    def from_stick(cls, stick: str) -> "ControllerSide":
        if stick == "left":
            return cls.L
        if stick == "right":
            return cls.R
        raise ValueError(f"unknown stick: {stick!r}")


RIGHT_BUTTONS = ("Y", "X", "B", "A", "SR", "SL", "R", "ZR", "Plus", "RStick", "Home")
LEFT_BUTTONS = ("Down", "Up", "Right", "Left", "SR", "SL", "L", "ZL", "Minus", "LStick", "Capture")

BUTTON_NAMES = {
    ControllerSide.L: frozenset(LEFT_BUTTONS),
    ControllerSide.R: frozenset(RIGHT_BUTTONS),
}


@dataclass(frozen=True)
class ButtonKey:
    name: str
    side: ControllerSide

    def __post_init__(self):
        side = ControllerSide(self.side)
        object.__setattr__(self, "side", side)
        if self.name not in BUTTON_NAMES[side]:
            raise ValueError(f"{self.name!r} is not a Joy-Con {side.value} button")

    def __str__(self):
        return f"{self.name}_{self.side.value}"


class ButtonAction(str, Enum):
    PRESS = "press"
    RELEASE = "release"


@dataclass(frozen=True)
class ButtonMessage:
    button: ButtonKey
    action: ButtonAction


@dataclass(frozen=True)
class JoystickMessage:
    side: ControllerSide
    angle: int  # degrees, 0..359


TransportMessage = Union[ButtonMessage, JoystickMessage]

ButtonFrame = Dict[ButtonKey, bool]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"
