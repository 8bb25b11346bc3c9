"""WebSocket client for the joybridge event stream

`JoyConClient` runs a `websockets` client on a private asyncio loop in a
daemon thread and feeds every frame into an `InputState`. A game loop on any
other thread queries it:

    client = JoyConClient("ws://localhost:8080")
    client.start()
    while running:
        if client.is_just_pressed("A"):
            jump()
        client.update()  # end of tick

Connection handling lives in `ConnectionMonitor`:

    connect()  -> CONNECTING
    open       -> CONNECTED
    close      -> DISCONNECTED, connect() again after RECONNECT_DELAY
    error      -> ERROR (the close that follows schedules the retry)
    reconnect()-> cancel pending retry, connect() now

Retries never stop and never back off.
"""
import asyncio
import logging
import threading

from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from core.config import DEFAULT_URL
from core.state import ConnectionState
from client.input_state import STICK_TTL, InputState

LOG = logging.getLogger("joybridge.client")

RECONNECT_DELAY = 5.0  # seconds

STATUS_TEXT = {
    ConnectionState.DISCONNECTED: "Disconnected",
    ConnectionState.CONNECTING: "Connecting",
    ConnectionState.CONNECTED: "Connected",
    ConnectionState.ERROR: "Error",
}


class ConnectionMonitor:
    """Connection state machine with a fixed-delay automatic retry.

    `open_transport()` starts a new transport and `close_transport()` tears
    the current one down; the transport reports back through `handle_open`,
    `handle_error` and `handle_close`.
    """

    def __init__(self, scheduler, open_transport, close_transport, retry_delay=RECONNECT_DELAY):
        self._scheduler = scheduler
        self._open_transport = open_transport
        self._close_transport = close_transport
        self.retry_delay = retry_delay
        self.state = ConnectionState.DISCONNECTED
        self.status = STATUS_TEXT[self.state]
        self.attempts = 0
        self._retry = None
        self._listeners = []

    def on_state_change(self, callback):
        """Register ``callback(state, status)``."""
        self._listeners.append(callback)
        return callback

    def _set(self, state, status=None):
        self.state = state
        self.status = status or STATUS_TEXT[state]
        for cb in list(self._listeners):
            try:
                cb(self.state, self.status)
            except Exception:
                LOG.exception("state listener failed")

    def _cancel_retry(self):
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    def connect(self, status=None):
        self._cancel_retry()
        self._close_transport()
        self.attempts += 1
        self._set(ConnectionState.CONNECTING, status)
        self._open_transport()

    def reconnect(self):
        LOG.info("manual reconnect requested")
        self.connect("Reconnecting...")

    def handle_open(self):
        LOG.info("connected")
        self._set(ConnectionState.CONNECTED)

    def handle_error(self, error):
        LOG.warning("connection error: %s", error)
        self._set(ConnectionState.ERROR)

    def handle_close(self):
        LOG.info("disconnected, retrying in %.1fs", self.retry_delay)
        self._set(ConnectionState.DISCONNECTED)
        self._cancel_retry()
        self._retry = self._scheduler.call_later(self.retry_delay, self._retry_now)

    def _retry_now(self):
        self._retry = None
        LOG.info("reconnecting (attempt %d)", self.attempts + 1)
        self.connect()

    def shutdown(self):
        self._cancel_retry()
        self._close_transport()


class JoyConClient:
    """Client for a joybridge server.

    Construction only prepares the loop and state; `start()` launches the
    network thread and makes the first connect, so the client goes
    straight from DISCONNECTED to CONNECTING there. Pass `autostart=True`
    to do both at construction.
    """

    def __init__(self, url=DEFAULT_URL, retry_delay=RECONNECT_DELAY, stick_ttl=STICK_TTL, autostart=False):
        self.url = url
        self._loop = asyncio.new_event_loop()
        self._t = None
        self._task = None
        self.input = InputState(self._loop, stick_ttl=stick_ttl)
        self.monitor = ConnectionMonitor(self._loop, self._open_transport, self._close_transport, retry_delay)
        if autostart:
            self.start()

    # -- lifecycle ---------------------------------------------------------

    def start(self):
        """Start the network thread and begin connecting."""
        if self._t is not None:
            raise RuntimeError("client already started")
        self._t = threading.Thread(target=self._run_loop, name="JoyConClient", daemon=True)
        self._t.start()
        self._loop.call_soon_threadsafe(self.monitor.connect)

    def stop(self, timeout=2.0):
        if self._t is None or self._loop.is_closed():
            return
        future = asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)
        try:
            future.result(timeout)
        except TimeoutError:
            LOG.warning("client shutdown timed out")
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._t.join(timeout)
        self._loop.close()

    def reconnect(self):
        """Drop the current connection (if any) and connect immediately."""
        self._loop.call_soon_threadsafe(self.monitor.reconnect)

    def _run_loop(self):
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    async def _shutdown(self):
        task = self._task
        self.monitor.shutdown()
        self.input.close()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    # -- transport ---------------------------------------------------------

    def _open_transport(self):
        self._task = self._loop.create_task(self._run_transport())

    def _close_transport(self):
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run_transport(self):
        # cancellation means a newer transport replaced this one: report nothing
        try:
            async with connect(self.url) as ws:
                self.monitor.handle_open()
                async for raw in ws:
                    self.input.apply_raw(raw)
        except ConnectionClosed as e:
            LOG.debug("connection closed: %s", e)
        except (OSError, InvalidHandshake, InvalidURI, TimeoutError) as e:
            self.monitor.handle_error(e)
        except Exception as e:
            LOG.exception("transport failed")
            self.monitor.handle_error(e)
        self.monitor.handle_close()

    # -- consumer API ------------------------------------------------------

    def update(self):
        self.input.update()

    def is_pressed(self, name, side=None):
        return self.input.is_pressed(name, side)

    def is_just_pressed(self, name, side=None):
        return self.input.is_just_pressed(name, side)

    def is_just_released(self, name, side=None):
        return self.input.is_just_released(name, side)

    def pressed_buttons(self):
        return self.input.pressed_buttons()

    def known_buttons(self):
        return self.input.known_buttons()

    def on_button_press(self, callback):
        return self.input.on_button_press(callback)

    def on_button_release(self, callback):
        return self.input.on_button_release(callback)

    def on_state_change(self, callback):
        """Register ``callback(state, status)``; runs on the network thread."""
        return self.monitor.on_state_change(callback)

    def stick_angle(self, side):
        return self.input.stick_angle(side)

    @property
    def left_stick_angle(self):
        return self.input.left_stick_angle

    @property
    def right_stick_angle(self):
        return self.input.right_stick_angle

    @property
    def connection_state(self):
        return self.monitor.state

    @property
    def status(self):
        return self.monitor.status

    @property
    def is_connected(self):
        return self.monitor.state is ConnectionState.CONNECTED
