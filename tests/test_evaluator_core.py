from __future__ import annotations

import pytest

from little_math_star.difficulty import GameMode
from little_math_star.evaluator import (
    After,
    AnswerEvaluator,
    PlaySound,
    RequestNextQuestion,
    Reward,
    SessionPhase,
    SessionState,
    SoundKind,
    Speak,
    transition,
)
from little_math_star.feedback import FeedbackTiming
from little_math_star.questions import AdditionOperands, CountingOperands, Question


def _counting(qid: int = 1) -> Question:
    return Question(
        id=qid,
        mode=GameMode.COUNTING,
        prompt="Can you count the dogs?",
        glyph="dog",
        operands=CountingOperands(count=3),
        correct_answer=3,
        options=(2, 3, 5),
    )


def _addition() -> Question:
    return Question(
        id=7,
        mode=GameMode.ADDITION,
        prompt="7 plus 8 equals?",
        glyph="star",
        operands=AdditionOperands(a=7, b=8),
        correct_answer=15,
        options=(15, 14, 16),
    )


def test_initial_state_is_idle_without_marks() -> None:
    state = SessionState(question=_counting())
    assert state.phase is SessionPhase.IDLE
    assert state.wrong_mark is None
    assert state.hint_visible is False
    assert state.question_id == 1


def test_correct_submission_locks_and_chains_success_effects() -> None:
    state, effects = transition(SessionState(question=_counting()), 3)

    assert state.phase is SessionPhase.LOCKED
    assert effects == (
        Speak("3"),
        After(
            1.0,
            (Speak("Great job!"), Reward(), After(1.0, (RequestNextQuestion(),), label="next question")),
            label="success",
        ),
    )


def test_wrong_submission_marks_and_shows_hint() -> None:
    state, effects = transition(SessionState(question=_counting()), 2)

    assert state.phase is SessionPhase.IDLE
    assert state.wrong_mark == 2
    assert state.hint_visible is True
    assert effects == (
        Speak("2"),
        PlaySound(SoundKind.WRONG),
        After(1.0, (Speak("Try again!"),), label="retry", idle_only=True),
    )


def test_addition_uses_its_own_phrases() -> None:
    _, ok = transition(SessionState(question=_addition()), 15)
    _, bad = transition(SessionState(question=_addition()), 14)
    assert isinstance(ok[1], After) and ok[1].effects[0] == Speak("You did it!")
    assert isinstance(bad[2], After) and bad[2].effects == (Speak("Oops, try again."),)


def test_values_outside_options_are_ignored() -> None:
    start = SessionState(question=_counting())
    state, effects = transition(start, 4)
    assert state is start
    assert effects == ()


def test_locked_state_ignores_everything() -> None:
    locked, _ = transition(SessionState(question=_counting()), 3)
    for value in (2, 3, 5, 99):
        state, effects = transition(locked, value)
        assert state is locked
        assert effects == ()


def test_custom_timing_flows_into_effects() -> None:
    timing = FeedbackTiming(success_delay_s=0.25, next_question_delay_s=0.75, retry_delay_s=2.0)
    _, ok = transition(SessionState(question=_counting()), 3, timing=timing)
    _, bad = transition(SessionState(question=_counting()), 5, timing=timing)
    success = ok[1]
    assert isinstance(success, After) and success.delay_s == 0.25
    assert isinstance(success.effects[2], After) and success.effects[2].delay_s == 0.75
    assert isinstance(bad[2], After) and bad[2].delay_s == 2.0


def test_evaluator_keeps_wrong_mark_until_replaced() -> None:
    ev = AnswerEvaluator(_counting(1))
    ev.submit(2)
    ev.submit(5)
    assert ev.state.wrong_mark == 5
    assert ev.state.hint_visible is True

    ev.replace_question(_counting(2))
    assert ev.state == SessionState(question=_counting(2))


def test_evaluator_requires_fresh_question_id() -> None:
    ev = AnswerEvaluator(_counting(1))
    with pytest.raises(ValueError, match="fresh id"):
        ev.replace_question(_counting(1))
