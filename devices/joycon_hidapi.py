"""Joy-Con session using hidapi (direct HID)

A `JoyConSession` owns one opened Joy-Con. It switches the controller into the
60 Hz full-report mode, reads reports on a background thread and emits
TransportMessages to subscribers:

  ButtonMessage(ButtonKey('A', R), press)
  JoystickMessage(L, 90)

Only transitions are emitted for buttons; the stick angle is emitted on every
report where the stick is outside the deadzone.
"""
import logging
import threading

from core.reader import DeviceReader
from core.state import ControllerSide, JoystickMessage
from devices.joycon_layout import (
    INPUT_MODE_FULL,
    NINTENDO_VID,
    RUMBLE_OFF,
    SUBCMD_SET_INPUT_MODE,
    SUBCOMMAND_REPORT_ID,
    side_for_product,
)
from devices.joycon_report import NO_BUTTONS, decode_report, detect_edges, stick_angle

try:
    import hid
except Exception:
    hid = None

LOG = logging.getLogger("joybridge.session")

READ_SIZE = 64
READ_TIMEOUT_MS = 100


class NoControllersError(RuntimeError):
    """No Joy-Con could be found or opened."""


def find_joycons():
    """Enumerate attached Joy-Cons.

    Returns a list of (path, side, info) tuples, left controllers first.
    """
    if hid is None:
        raise NoControllersError("hidapi not available — install the 'hidapi' package")

    found = []
    for info in hid.enumerate(NINTENDO_VID, 0):
        side = side_for_product(info.get("product_id"))
        if side is None:
            continue
        LOG.info("Found Joy-Con %s: %s", side.value, info.get("product_string") or info.get("path"))
        found.append((info["path"], side, info))
    found.sort(key=lambda item: item[1].value)
    return found


class JoyConSession(DeviceReader):
    """Reads one Joy-Con via hidapi."""

    def __init__(self, side, path=None, device=None):
        self.side = ControllerSide(side)
        self._path = path
        self._device = device
        self._subs = []
        self._t = None
        self._stop = threading.Event()
        self._prev_buttons = NO_BUTTONS
        self._packet_counter = 0

    def __repr__(self):
        return f"JoyConSession(side={self.side.value!r}, path={self._path!r})"

    def subscribe(self, callback):
        """Register a callback to receive TransportMessages."""
        self._subs.append(callback)

    def build_subcommand(self, subcommand_id, payload=b""):
        """Build an output report 0x01 carrying one sub-command."""
        buf = bytearray(10 + len(payload))
        buf[0] = SUBCOMMAND_REPORT_ID
        buf[1] = self._packet_counter & 0x0F
        self._packet_counter = (self._packet_counter + 1) & 0x0F
        buf[2:10] = RUMBLE_OFF
        buf[10] = subcommand_id
        buf[11:] = payload
        return bytes(buf)

    def _open(self):
        if hid is None:
            raise NoControllersError("hidapi not available — cannot open Joy-Con")
        device = hid.device()
        device.open_path(self._path)
        LOG.info("Opened Joy-Con %s: %s", self.side.value, device.get_product_string() or self._path)
        return device

    def start(self):
        """Open the device, request full reports and start the reader thread.

        Raises OSError (or ValueError from hidapi) if the device cannot be
        opened or written to.
        """
        if self._device is None:
            self._device = self._open()
        cmd = self.build_subcommand(SUBCMD_SET_INPUT_MODE, bytes([INPUT_MODE_FULL]))
        try:
            self._device.write(list(cmd))
        except (OSError, ValueError):
            self._close_device()
            raise
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name=f"JoyCon{self.side.value}", daemon=True)
        self._t.start()
        LOG.info("Joy-Con %s session started", self.side.value)

    def stop(self):
        """Stop the reader thread."""
        self._stop.set()
        if self._t and self._t is not threading.current_thread():
            self._t.join(timeout=1.0)
        self._close_device()

    def is_alive(self):
        return self._t is not None and self._t.is_alive() and not self._stop.is_set()

    def _close_device(self):
        device, self._device = self._device, None
        if device is not None:
            try:
                device.close()
            except (OSError, ValueError):
                LOG.debug("error closing Joy-Con %s", self.side.value, exc_info=True)

    def _emit(self, message):
        """Emit a message to all subscribers."""
        LOG.debug("Joy-Con %s -> %s", self.side.value, message)
        for cb in self._subs:
            try:
                cb(message)
            except Exception:
                LOG.exception("subscriber callback failed")

    def handle_report(self, data):
        """Process one raw input report; returns the messages emitted."""
        report = decode_report(data)
        if report is None:
            return []

        messages = detect_edges(self.side, report.buttons, self._prev_buttons)
        angle = stick_angle(*report.stick_for(self.side))
        if angle is not None:
            messages.append(JoystickMessage(self.side, angle))

        for message in messages:
            self._emit(message)
        self._prev_buttons = report.buttons
        return messages

    def _loop(self):
        """Main read loop. Ends for good on the first HID error."""
        while not self._stop.is_set():
            device = self._device
            if device is None:
                break
            try:
                data = device.read(READ_SIZE, timeout_ms=READ_TIMEOUT_MS)
            except (OSError, ValueError) as e:
                LOG.error("HID error on Joy-Con %s, closing session: %s", self.side.value, e)
                break
            if data:
                self.handle_report(data)
        self._stop.set()
        self._close_device()
        LOG.info("Joy-Con %s session ended", self.side.value)


def open_sessions(callback, found=None):
    """Create, subscribe and start a session for every Joy-Con found.

    Controllers that fail to open are logged and skipped; raises
    NoControllersError when none could be started.
    """
    if found is None:
        found = find_joycons()
    if not found:
        raise NoControllersError("No Joy-Con found — check the Bluetooth pairing")

    sessions = []
    for path, side, _info in found:
        session = JoyConSession(side, path=path)
        session.subscribe(callback)
        try:
            session.start()
        except (OSError, ValueError) as e:
            LOG.error("Failed to open Joy-Con %s (%s): %s", side.value, path, e)
            continue
        sessions.append(session)

    if not sessions:
        raise NoControllersError("No usable Joy-Con — all devices failed to open")
    return sessions
