"""Answer evaluation state machine.

``transition`` is a pure reducer over an immutable ``SessionState``: it takes
one submitted value and returns the next state plus the side effects the
caller must carry out (speech, sounds, the reward callback, and requests to
deal the next question).  Delayed effects are expressed as ``After`` records;
the session layer hands them to the ``FeedbackScheduler`` tagged with the
question id so they cannot leak into a later question.

    IDLE --correct--> LOCKED --(next question)--> IDLE
    IDLE --wrong-----> IDLE (wrong mark + hint)
    LOCKED --any-----> LOCKED (ignored)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .difficulty import GameMode
from .feedback import FeedbackTiming
from .questions import Question


class SessionPhase(str, Enum):
    IDLE = "idle"
    LOCKED = "locked"


class SoundKind(str, Enum):
    CLICK = "click"
    CORRECT = "correct"
    WRONG = "wrong"


@dataclass(frozen=True, slots=True)
class FeedbackPhrases:
    success: str
    retry: str


FEEDBACK_PHRASES: dict[GameMode, FeedbackPhrases] = {
    GameMode.COUNTING: FeedbackPhrases(success="Great job!", retry="Try again!"),
    GameMode.ADDITION: FeedbackPhrases(success="You did it!", retry="Oops, try again."),
}


@dataclass(frozen=True, slots=True)
class Speak:
    text: str


@dataclass(frozen=True, slots=True)
class PlaySound:
    kind: SoundKind


@dataclass(frozen=True, slots=True)
class Reward:
    pass


@dataclass(frozen=True, slots=True)
class RequestNextQuestion:
    pass


@dataclass(frozen=True, slots=True)
class After:
    delay_s: float
    effects: tuple["Effect", ...]
    label: str = ""
    # Skip at fire time unless the session is still awaiting an answer.
    idle_only: bool = False


Effect = Speak | PlaySound | Reward | RequestNextQuestion | After


@dataclass(frozen=True, slots=True)
class SessionState:
    question: Question
    phase: SessionPhase = SessionPhase.IDLE
    wrong_mark: int | None = None
    hint_visible: bool = False

    @property
    def question_id(self) -> int:
        return self.question.id

    @property
    def locked(self) -> bool:
        return self.phase is SessionPhase.LOCKED


def transition(
    state: SessionState,
    value: int,
    *,
    timing: FeedbackTiming = FeedbackTiming(),
) -> tuple[SessionState, tuple[Effect, ...]]:
    """Apply one submission. Ignored submissions return ``state`` unchanged and no effects."""

    if state.phase is SessionPhase.LOCKED:
        return state, ()
    question = state.question
    if not question.has_option(value):
        return state, ()

    phrases = FEEDBACK_PHRASES[question.mode]
    if value == question.correct_answer:
        next_state = replace(state, phase=SessionPhase.LOCKED)
        effects: tuple[Effect, ...] = (
            Speak(str(value)),
            After(
                timing.success_delay_s,
                (
                    Speak(phrases.success),
                    Reward(),
                    After(timing.next_question_delay_s, (RequestNextQuestion(),), label="next question"),
                ),
                label="success",
            ),
        )
        return next_state, effects

    next_state = replace(state, wrong_mark=value, hint_visible=True)
    effects = (
        Speak(str(value)),
        PlaySound(SoundKind.WRONG),
        After(timing.retry_delay_s, (Speak(phrases.retry),), label="retry", idle_only=True),
    )
    return next_state, effects


class AnswerEvaluator:
    """Owns the current ``SessionState``; the only place it changes."""

    def __init__(self, question: Question, *, timing: FeedbackTiming | None = None) -> None:
        self._timing = timing or FeedbackTiming()
        self._state = SessionState(question=question)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def question(self) -> Question:
        return self._state.question

    def submit(self, value: int) -> tuple[Effect, ...]:
        self._state, effects = transition(self._state, value, timing=self._timing)
        return effects

    def replace_question(self, question: Question) -> SessionState:
        if question.id == self._state.question.id:
            raise ValueError("replacement question must have a fresh id")
        self._state = SessionState(question=question)
        return self._state
