"""Button and stick state built from the bridge's event stream.

`InputState` keeps two button frames, *current* and *previous*. Messages
mutate the current frame as they arrive; the consumer calls `update()` once
per tick to copy current into previous, which is what makes
`is_just_pressed` true for exactly one tick after a press.

Stick angles are momentary: each sample expires STICK_TTL seconds after it
arrived unless a newer sample for the same stick replaces it. Expiry timers
come from a scheduler with an asyncio-style ``call_later(delay, callback)``
returning a handle with ``cancel()``.
"""
import logging
import threading
from typing import Dict, List, Optional

from core.protocol import ProtocolError, decode_message
from core.state import (
    ButtonAction,
    ButtonFrame,
    ButtonKey,
    ButtonMessage,
    ControllerSide,
    JoystickMessage,
)

LOG = logging.getLogger("joybridge.client.state")

STICK_TTL = 0.1  # seconds


def _sides(side):
    if side is None:
        return (ControllerSide.L, ControllerSide.R)
    return (ControllerSide(side),)


class InputState:
    def __init__(self, scheduler, stick_ttl: float = STICK_TTL):
        self._scheduler = scheduler
        self._stick_ttl = stick_ttl
        self._lock = threading.RLock()
        self._current: ButtonFrame = {}
        self._previous: ButtonFrame = {}
        self._angles: Dict[ControllerSide, int] = {}
        self._expiry = {}
        self._on_press = []
        self._on_release = []

    # -- inbound -----------------------------------------------------------

    def apply_raw(self, raw):
        """Apply one wire frame; malformed frames are logged and dropped."""
        try:
            message = decode_message(raw)
        except ProtocolError as e:
            LOG.warning("dropping bad message %.80r: %s", raw, e)
            return None
        self.apply_message(message)
        return message

    def apply_message(self, message):
        if isinstance(message, ButtonMessage):
            pressed = message.action is ButtonAction.PRESS
            with self._lock:
                self._current[message.button] = pressed
            listeners = self._on_press if pressed else self._on_release
            self._notify(listeners, message.button)
        elif isinstance(message, JoystickMessage):
            self._set_angle(message.side, message.angle)
        else:
            raise TypeError(f"not a transport message: {message!r}")

    def _set_angle(self, side, angle):
        with self._lock:
            previous = self._expiry.pop(side, None)
            if previous is not None:
                previous.cancel()
            self._angles[side] = angle

            def expire():
                with self._lock:
                    # a newer sample owns the slot now
                    if self._expiry.get(side) is not handle:
                        return
                    del self._expiry[side]
                    self._angles.pop(side, None)

            handle = self._scheduler.call_later(self._stick_ttl, expire)
            self._expiry[side] = handle

    def _notify(self, listeners, key):
        for cb in list(listeners):
            try:
                cb(key.name, key.side)
            except Exception:
                LOG.exception("button listener failed")

    # -- per tick ----------------------------------------------------------

    def update(self):
        """Rotate current into previous; call exactly once per consumer tick."""
        with self._lock:
            self._previous = dict(self._current)

    # -- queries -----------------------------------------------------------

    def is_pressed(self, name: str, side=None) -> bool:
        with self._lock:
            return any(self._current.get(_key(name, s), False) for s in _sides(side))

    def is_just_pressed(self, name: str, side=None) -> bool:
        with self._lock:
            for s in _sides(side):
                key = _key(name, s)
                if self._current.get(key, False) and not self._previous.get(key, False):
                    return True
            return False

    def is_just_released(self, name: str, side=None) -> bool:
        with self._lock:
            for s in _sides(side):
                key = _key(name, s)
                if self._previous.get(key, False) and not self._current.get(key, False):
                    return True
            return False

    def stick_angle(self, side) -> Optional[int]:
        with self._lock:
            return self._angles.get(ControllerSide(side))

    @property
    def left_stick_angle(self) -> Optional[int]:
        return self.stick_angle(ControllerSide.L)

    @property
    def right_stick_angle(self) -> Optional[int]:
        return self.stick_angle(ControllerSide.R)

    def pressed_buttons(self) -> List[ButtonKey]:
        with self._lock:
            return [key for key, down in self._current.items() if down]

    def known_buttons(self) -> List[ButtonKey]:
        """Every key seen since connecting, pressed or not."""
        with self._lock:
            return list(self._current)

    # -- listeners ---------------------------------------------------------

    def on_button_press(self, callback):
        """Register ``callback(name, side)``, called as soon as a press arrives."""
        self._on_press.append(callback)
        return callback

    def on_button_release(self, callback):
        self._on_release.append(callback)
        return callback

    def close(self):
        """Cancel pending stick expiries."""
        with self._lock:
            for handle in self._expiry.values():
                handle.cancel()
            self._expiry.clear()


def _key(name, side):
    """ButtonKey for a query, or None when the name is not on that side."""
    try:
        return ButtonKey(name, side)
    except ValueError:
        return None
