"""Tests for the idle watchdog.

Runs against a manual clock, no real timers.
"""

from hwqs_protocol.watchdog import Watchdog


class FakeHandle:
    """Scheduled callback on the fake loop."""

    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """Just enough of an event loop for call_later and time."""

    def __init__(self):
        self.now = 0.0
        self.handles: list[FakeHandle] = []

    def time(self):
        return self.now

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [
                h for h in self.handles if not h.cancelled and h.when <= target
            ]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


def make_watchdog(loop, ready=True):
    probes = []
    state = {"ready": ready}
    watchdog = Watchdog(
        probe=lambda: probes.append(loop.time()),
        is_ready=lambda: state["ready"],
        idle_threshold=40.0,
        check_interval=25.0,
        loop=loop,
    )
    return watchdog, probes, state


class TestWatchdog:
    """Tests for Watchdog."""

    def test_no_probe_before_threshold(self):
        loop = FakeLoop()
        watchdog, probes, _ = make_watchdog(loop)
        watchdog.start()
        loop.advance(25)
        assert probes == []

    def test_probe_once_when_idle(self):
        loop = FakeLoop()
        watchdog, probes, _ = make_watchdog(loop)
        watchdog.start()
        loop.advance(50)
        assert probes == [50.0]
        assert watchdog.probe_count == 1

    def test_probe_resets_idle_clock(self):
        loop = FakeLoop()
        watchdog, probes, _ = make_watchdog(loop)
        watchdog.start()
        loop.advance(75)
        # Probed at 50, idle for only 25s at 75
        assert probes == [50.0]
        loop.advance(25)
        assert probes == [50.0, 100.0]

    def test_at_most_one_probe_per_cycle(self):
        loop = FakeLoop()
        watchdog, probes, _ = make_watchdog(loop)
        watchdog.start()
        loop.advance(1000)
        assert len(probes) == len(set(probes))
        assert all(b - a >= 25 for a, b in zip(probes, probes[1:]))

    def test_traffic_prevents_probe(self):
        loop = FakeLoop()
        watchdog, probes, _ = make_watchdog(loop)
        watchdog.start()
        for _ in range(10):
            loop.advance(20)
            watchdog.touch()
        assert probes == []

    def test_no_probe_when_not_ready(self):
        loop = FakeLoop()
        watchdog, probes, state = make_watchdog(loop, ready=False)
        watchdog.start()
        loop.advance(200)
        assert probes == []
        state["ready"] = True
        loop.advance(25)
        assert len(probes) == 1

    def test_stop_cancels_checks(self):
        loop = FakeLoop()
        watchdog, probes, _ = make_watchdog(loop)
        watchdog.start()
        watchdog.stop()
        loop.advance(200)
        assert probes == []
        assert not watchdog.running

    def test_start_twice_schedules_once(self):
        loop = FakeLoop()
        watchdog, _, _ = make_watchdog(loop)
        watchdog.start()
        watchdog.start()
        assert len([h for h in loop.handles if not h.cancelled]) == 1

    def test_expired(self):
        loop = FakeLoop()
        watchdog, _, _ = make_watchdog(loop)
        loop.advance(39)
        assert not watchdog.expired
        loop.advance(1)
        assert watchdog.expired
        watchdog.touch()
        assert watchdog.idle_for == 0
