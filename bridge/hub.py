"""WebSocket fan-out for bridge messages

`BroadcastHub.broadcast` can be called from any reader thread. The message is
serialized once on the caller's thread and the sends are marshalled onto the
asyncio loop, so a slow client never stalls report decoding. Delivery is
best-effort: connections that are not OPEN are skipped and send failures are
dropped. A client with MAX_BACKLOG sends still in flight misses messages until
it catches up.
"""
import asyncio
import logging
import threading

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from core.protocol import encode_message

LOG = logging.getLogger("joybridge.hub")

MAX_BACKLOG = 64  # in-flight sends per client


class ClientRegistry:
    """Thread-safe set of connected WebSocket clients."""

    def __init__(self):
        self._clients = set()
        self._lock = threading.Lock()

    def add(self, connection):
        with self._lock:
            self._clients.add(connection)
            return len(self._clients)

    def discard(self, connection):
        with self._lock:
            self._clients.discard(connection)
            return len(self._clients)

    def snapshot(self):
        with self._lock:
            return list(self._clients)

    def __len__(self):
        with self._lock:
            return len(self._clients)

    def __contains__(self, connection):
        with self._lock:
            return connection in self._clients


class BroadcastHub:
    def __init__(self, registry: ClientRegistry, loop: asyncio.AbstractEventLoop, max_backlog=MAX_BACKLOG):
        self.registry = registry
        self.max_backlog = max_backlog
        self.dropped = 0
        self._loop = loop
        self._sent = 0
        self._pending = set()
        self._backlog = {}  # client -> sends in flight, touched on the loop only

    def broadcast(self, message):
        """Queue `message` for every open client. Safe to call from any thread."""
        payload = encode_message(message)
        try:
            self._loop.call_soon_threadsafe(self._fan_out, payload)
        except RuntimeError:
            LOG.debug("event loop closed, dropping %s", payload)

    def _fan_out(self, payload):
        for client in self.registry.snapshot():
            if client.state is not State.OPEN:
                continue
            queued = self._backlog.get(client, 0)
            if queued >= self.max_backlog:
                self.dropped += 1
                continue
            self._backlog[client] = queued + 1
            task = self._loop.create_task(self._send(client, payload))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        self._sent += 1
        if self._sent % 600 == 0:
            LOG.debug(
                "broadcast %d messages to %d clients (%d dropped)", self._sent, len(self.registry), self.dropped
            )

    async def _send(self, client, payload):
        try:
            await client.send(payload)
        except (ConnectionClosed, OSError) as e:
            LOG.debug("send to %s failed: %s", getattr(client, "remote_address", client), e)
        finally:
            left = self._backlog.pop(client, 1) - 1
            if left:
                self._backlog[client] = left

    async def handle_client(self, connection):
        """WebSocket handler: keep the connection registered until it closes."""
        count = self.registry.add(connection)
        LOG.info("client connected from %s (%d connected)", connection.remote_address, count)
        try:
            # inbound frames carry nothing for us; drain them until close
            async for _ in connection:
                pass
        except ConnectionClosed:
            pass
        finally:
            count = self.registry.discard(connection)
            LOG.info("client disconnected: %s (%d connected)", connection.remote_address, count)
