from __future__ import annotations

from conftest import ManualClock

from agent_sensei.engine.accumulator import TranscriptAccumulator
from agent_sensei.engine.busy import BusyDetector
from agent_sensei.engine.epoch import EpochState, EpochTracker
from agent_sensei.engine.filters import ContentSelector


class Screen:
    """Drives a tracker: each tick shows some lines and appends them to the log."""

    def __init__(self, quiet_window_s: float, clock: ManualClock) -> None:
        detector = BusyDetector()
        self.accumulator = TranscriptAccumulator(ContentSelector(detector))
        self.tracker = EpochTracker(self.accumulator, detector, quiet_window_s, clock=clock)
        self.log: list[str] = []

    def show(self, *lines: str):
        self.log.extend(lines)
        return self.tracker.step(list(lines), list(self.log))


def test_idle_ticks_only_advance_the_mark(clock: ManualClock) -> None:
    screen = Screen(2.0, clock)
    assert screen.show("$ ls") is None
    assert screen.show("README.md") is None
    assert screen.tracker.state is EpochState.IDLE
    assert screen.tracker.epoch is None
    assert screen.accumulator.high_water_mark == 2


def test_busy_opens_epoch_at_current_mark(clock: ManualClock) -> None:
    screen = Screen(2.0, clock)
    screen.show(">")
    screen.show("Working...")
    epoch = screen.tracker.epoch
    assert screen.tracker.state is EpochState.GENERATING
    assert epoch is not None
    assert epoch.start_offset == 1


def test_quiet_window_closes_epoch(clock: ManualClock) -> None:
    screen = Screen(2.0, clock)
    screen.show("Working...")
    screen.show("Working...", "Wrote src/app.py.")
    assert screen.show("All done.") is None
    assert screen.tracker.state is EpochState.DISAPPEARED_WAITING
    assert screen.tracker.epoch is not None
    assert screen.tracker.epoch.disappeared_at == clock.now

    clock.advance(1.0)
    assert screen.show(">") is None

    clock.advance(1.5)
    closed = screen.show(">")
    assert closed is not None
    assert closed.lines == ("Wrote src/app.py.", "All done.")
    assert closed.tail == ">"
    assert closed.awaiting_input
    assert closed.content == "Wrote src/app.py.\nAll done."
    assert screen.tracker.state is EpochState.IDLE
    assert screen.tracker.epoch is None


def test_busy_flicker_inside_window_keeps_epoch(clock: ManualClock) -> None:
    screen = Screen(3.0, clock)
    screen.show("Working...")
    screen.show("Step one finished.")
    clock.advance(1.0)
    screen.show("Working...")
    assert screen.tracker.state is EpochState.GENERATING
    assert screen.tracker.deadline is None
    assert screen.tracker.epoch.lines == ["Step one finished."]

    clock.advance(0.5)
    screen.show("Step two finished.")
    clock.advance(2.9)
    assert screen.show("") is None

    clock.advance(0.2)
    closed = screen.show(">")
    assert closed is not None
    assert closed.lines == ("Step one finished.", "Step two finished.")


def test_idle_ticks_do_not_push_deadline_back(clock: ManualClock) -> None:
    screen = Screen(2.0, clock)
    screen.show("Working...")
    screen.show("Output.")
    deadline = screen.tracker.deadline
    for _ in range(3):
        clock.advance(0.5)
        assert screen.show("More output.") is None
        assert screen.tracker.deadline == deadline
    clock.advance(0.5)
    assert screen.show(">") is not None


def test_not_awaiting_input_when_tail_is_plain_text(clock: ManualClock) -> None:
    screen = Screen(0.0, clock)
    screen.show("Working...")
    screen.show("Compiled 3 files")
    closed = screen.show("Compiled 3 files")
    assert closed is not None
    assert not closed.awaiting_input


def test_cancel_timer_keeps_epoch_and_rearms(clock: ManualClock) -> None:
    screen = Screen(2.0, clock)
    screen.show("Working...")
    screen.show("Result line.")
    screen.tracker.cancel_timer()
    assert screen.tracker.deadline is None
    assert screen.tracker.state is EpochState.DISAPPEARED_WAITING

    clock.advance(10.0)
    assert screen.show(">") is None
    assert screen.tracker.deadline == clock.now + 2.0

    clock.advance(2.0)
    closed = screen.show(">")
    assert closed is not None
    assert closed.lines == ("Result line.",)


def test_reset_forces_idle(clock: ManualClock) -> None:
    screen = Screen(2.0, clock)
    screen.show("Working...")
    screen.tracker.reset()
    assert screen.tracker.state is EpochState.IDLE
    assert screen.tracker.epoch is None
    assert screen.tracker.deadline is None
