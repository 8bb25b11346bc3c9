import time

import pytest

from conftest import FakeHidDevice, make_report
from core.state import ButtonAction, ButtonKey, ButtonMessage, ControllerSide, JoystickMessage
from devices import joycon_hidapi
from devices.joycon_hidapi import JoyConSession, NoControllersError, open_sessions

L, R = ControllerSide.L, ControllerSide.R


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_start_requests_full_report_mode():
    device = FakeHidDevice()
    session = JoyConSession(R, device=device)
    session.start()
    session.stop()

    assert device.written[0] == [0x01, 0x00, 0x00, 0x01, 0x40, 0x40, 0x00, 0x01, 0x40, 0x40, 0x03, 0x30]
    assert device.closed


def test_packet_counter_rolls_over_after_16():
    session = JoyConSession(L, device=FakeHidDevice())
    counters = [session.build_subcommand(0x03, b"\x30")[1] for _ in range(18)]
    assert counters == list(range(16)) + [0, 1]


def test_handle_report_emits_transitions_then_stick():
    session = JoyConSession(R, device=FakeHidDevice())
    received = []
    session.subscribe(received.append)

    emitted = session.handle_report(make_report(buttons=(0x08, 0, 0), right=(3048, 2048)))

    assert emitted == [
        ButtonMessage(ButtonKey("A", R), ButtonAction.PRESS),
        JoystickMessage(R, 0),
    ]
    assert received == emitted


def test_repeated_report_only_resends_stick():
    session = JoyConSession(R, device=FakeHidDevice())
    report = make_report(buttons=(0x08, 0, 0))
    session.handle_report(report)
    assert session.handle_report(report) == []

    released = session.handle_report(make_report())
    assert released == [ButtonMessage(ButtonKey("A", R), ButtonAction.RELEASE)]


def test_left_session_samples_left_stick_only():
    session = JoyConSession(L, device=FakeHidDevice())
    assert session.handle_report(make_report(right=(3048, 2048))) == []
    assert session.handle_report(make_report(left=(2048, 1048))) == [JoystickMessage(L, 270)]


def test_unrecognised_report_is_dropped_without_touching_state():
    session = JoyConSession(L, device=FakeHidDevice())
    session.handle_report(make_report(buttons=(0, 0, 0x02)))
    assert session.handle_report(make_report(buttons=(0, 0, 0), report_id=0x21)) == []
    # Up is still considered held, so this is not a new press
    assert session.handle_report(make_report(buttons=(0, 0, 0x02))) == []


def test_failing_subscriber_does_not_break_decoding():
    session = JoyConSession(R, device=FakeHidDevice())
    seen = []

    def broken(message):
        raise RuntimeError("boom")

    session.subscribe(broken)
    session.subscribe(seen.append)
    session.handle_report(make_report(buttons=(0x01, 0, 0)))
    assert seen == [ButtonMessage(ButtonKey("Y", R), ButtonAction.PRESS)]


def test_reader_thread_delivers_reports():
    device = FakeHidDevice(reports=[make_report(buttons=(0x02, 0, 0)), make_report()])
    session = JoyConSession(R, device=device)
    seen = []
    session.subscribe(seen.append)
    session.start()
    try:
        assert wait_for(lambda: len(seen) == 2)
    finally:
        session.stop()
    assert [m.action for m in seen] == [ButtonAction.PRESS, ButtonAction.RELEASE]


def test_hid_error_ends_session():
    device = FakeHidDevice(reports=[make_report(buttons=(0x04, 0, 0))], fail_after=True)
    session = JoyConSession(R, device=device)
    seen = []
    session.subscribe(seen.append)
    session.start()

    assert wait_for(lambda: device.closed)
    assert wait_for(lambda: not session.is_alive())
    assert seen == [ButtonMessage(ButtonKey("B", R), ButtonAction.PRESS)]
    session.stop()


def test_open_sessions_without_devices_is_fatal():
    with pytest.raises(NoControllersError):
        open_sessions(lambda message: None, found=[])


def test_open_sessions_skips_devices_that_fail(monkeypatch):
    def fake_open(self):
        if self.side is L:
            raise OSError("open failed")
        return FakeHidDevice()

    monkeypatch.setattr(JoyConSession, "_open", fake_open)
    sessions = open_sessions(lambda message: None, found=[(b"l", L, {}), (b"r", R, {})])
    try:
        assert [s.side for s in sessions] == [R]
    finally:
        for s in sessions:
            s.stop()


class RejectingHidDevice(FakeHidDevice):
    def write(self, data):
        raise ValueError("device not open")


def test_open_sessions_skips_device_rejecting_mode_switch(monkeypatch):
    def fake_open(self):
        return RejectingHidDevice() if self.side is L else FakeHidDevice()

    monkeypatch.setattr(JoyConSession, "_open", fake_open)
    sessions = open_sessions(lambda message: None, found=[(b"l", L, {}), (b"r", R, {})])
    try:
        assert [s.side for s in sessions] == [R]
    finally:
        for s in sessions:
            s.stop()


def test_open_sessions_all_failing_is_fatal(monkeypatch):
    def fake_open(self):
        raise OSError("open failed")

    monkeypatch.setattr(JoyConSession, "_open", fake_open)
    with pytest.raises(NoControllersError):
        open_sessions(lambda message: None, found=[(b"l", L, {})])


def test_find_joycons_filters_allow_list(monkeypatch):
    class FakeHid:
        @staticmethod
        def enumerate(vid, pid):
            assert vid == 0x057E
            return [
                {"path": b"r", "product_id": 0x2007, "product_string": "Joy-Con (R)"},
                {"path": b"pro", "product_id": 0x2009, "product_string": "Pro Controller"},
                {"path": b"l", "product_id": 0x2006, "product_string": "Joy-Con (L)"},
            ]

    monkeypatch.setattr(joycon_hidapi, "hid", FakeHid)
    found = joycon_hidapi.find_joycons()
    assert [(path, side) for path, side, _ in found] == [(b"l", L), (b"r", R)]
