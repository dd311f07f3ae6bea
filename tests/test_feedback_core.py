from __future__ import annotations

from dataclasses import dataclass

import pytest

from little_math_star.feedback import FeedbackScheduler, FeedbackTiming


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


@dataclass
class Current:
    id: int | None = 1

    def __call__(self) -> int | None:
        return self.id


def test_callbacks_fire_only_when_due_and_in_order() -> None:
    clock = FakeClock()
    fired: list[str] = []
    sched = FeedbackScheduler(clock=clock, current_id=Current())

    sched.schedule(1.0, 1, lambda: fired.append("late"))
    sched.schedule(0.5, 1, lambda: fired.append("early"))

    assert sched.update() == 0
    clock.advance(0.5)
    assert sched.update() == 1
    clock.advance(0.5)
    assert sched.update() == 1
    assert fired == ["early", "late"]
    assert sched.pending_count == 0


def test_stale_question_callbacks_are_silent_noops() -> None:
    clock = FakeClock()
    current = Current(1)
    fired: list[int] = []
    sched = FeedbackScheduler(clock=clock, current_id=current)

    sched.schedule(1.0, 1, lambda: fired.append(1))
    current.id = 2
    sched.schedule(1.0, 2, lambda: fired.append(2))

    clock.advance(1.0)
    assert sched.update() == 1
    assert fired == [2]


def test_chained_callbacks_due_now_fire_in_same_update() -> None:
    clock = FakeClock()
    fired: list[str] = []
    sched = FeedbackScheduler(clock=clock, current_id=Current())

    def first() -> None:
        fired.append("first")
        sched.schedule(0.0, 1, lambda: fired.append("second"))

    sched.schedule(0.2, 1, first)
    clock.advance(0.2)
    assert sched.update() == 2
    assert fired == ["first", "second"]


def test_cancel_and_cancel_all() -> None:
    clock = FakeClock()
    fired: list[str] = []
    sched = FeedbackScheduler(clock=clock, current_id=Current())

    token = sched.schedule(0.1, 1, lambda: fired.append("a"))
    sched.schedule(0.2, 1, lambda: fired.append("b"))
    sched.schedule(0.3, 1, lambda: fired.append("c"))

    assert sched.cancel(token) is True
    assert sched.cancel(token) is False
    assert sched.next_due_s() == pytest.approx(0.2)
    assert sched.cancel_all() == 2
    assert sched.next_due_s() is None

    clock.advance(1.0)
    assert sched.update() == 0
    assert fired == []


def test_negative_delay_rejected() -> None:
    sched = FeedbackScheduler(clock=FakeClock(), current_id=Current())
    with pytest.raises(ValueError):
        sched.schedule(-0.1, 1, lambda: None)


def test_timing_defaults_and_validation() -> None:
    timing = FeedbackTiming()
    assert (timing.success_delay_s, timing.next_question_delay_s, timing.retry_delay_s) == (1.0, 1.0, 1.0)
    assert timing.intro_delay_s == 0.5
    with pytest.raises(ValueError):
        FeedbackTiming(retry_delay_s=-1.0)
