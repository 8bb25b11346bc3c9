"""Shared fakes for the joybridge tests"""
import time

import pytest


def make_report(buttons=(0, 0, 0), left=(2048, 2048), right=(2048, 2048), report_id=0x30, length=49):
    """Build a raw Joy-Con input report as hidapi returns it (list of ints)."""

    def pack(x, y):
        return [x & 0xFF, ((x >> 8) & 0x0F) | ((y & 0x0F) << 4), (y >> 4) & 0xFF]

    data = [report_id, 0x00, 0x8E, *buttons, *pack(*left), *pack(*right)]
    return data + [0] * (length - len(data))


class FakeHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock with the asyncio ``call_later`` interface."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def pending(self):
        return [h for h in self.handles if not h.cancelled and h.when is not None]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.pending() if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.now = handle.when
            handle.when = None
            handle.callback()
        self.now = target


class FakeHidDevice:
    def __init__(self, reports=(), fail_after=False):
        self.written = []
        self.reports = list(reports)
        self.fail_after = fail_after
        self.closed = False

    def write(self, data):
        self.written.append(list(data))
        return len(data)

    def read(self, size, timeout_ms=0):
        if self.reports:
            return self.reports.pop(0)
        if self.fail_after:
            raise OSError("read error")
        time.sleep(0.001)
        return []

    def close(self):
        self.closed = True


@pytest.fixture
def scheduler():
    return FakeScheduler()
