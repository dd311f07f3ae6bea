from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from .difficulty import DEFAULT_PROFILE, Difficulty, DifficultyProfile, GameMode
from .evaluator import (
    After,
    AnswerEvaluator,
    Effect,
    PlaySound,
    RequestNextQuestion,
    Reward,
    SessionState,
    SoundKind,
    Speak,
)
from .feedback import Clock, FeedbackScheduler, FeedbackTiming
from .questions import AdditionOperands, Question, QuestionGenerator, generator_for_mode

logger = logging.getLogger(__name__)

COUNTING_INTRO = "How many?"


class Speaker(Protocol):
    def speak(self, text: str) -> None: ...
    def stop(self) -> None: ...


class SoundPlayer(Protocol):
    def play(self, kind: SoundKind) -> None: ...


class GameSession:
    """One mounted counting/addition game.

    Wires the generator, the evaluator and the scheduler together and turns
    evaluator effects into calls on the speech/sound collaborators.  Time only
    advances through :meth:`update`, which the UI calls once per frame.
    """

    def __init__(
        self,
        *,
        mode: GameMode,
        difficulty: Difficulty,
        clock: Clock,
        speaker: Speaker,
        sounds: SoundPlayer,
        on_correct: Callable[[], None],
        seed: int | None = None,
        profile: DifficultyProfile = DEFAULT_PROFILE,
        timing: FeedbackTiming | None = None,
        generator: QuestionGenerator | None = None,
    ) -> None:
        self._mode = GameMode(mode)
        self._difficulty = Difficulty(difficulty)
        self._profile = profile
        self._timing = timing or FeedbackTiming()
        self._speaker = speaker
        self._sounds = sounds
        self._on_correct = on_correct
        self._generator = generator if generator is not None else generator_for_mode(self._mode, seed=seed)
        if self._generator.mode is not self._mode:
            raise ValueError(f"generator mode {self._generator.mode.value} does not match {self._mode.value}")
        self._closed = False
        self._scheduler = FeedbackScheduler(clock=clock, current_id=self._active_question_id)
        self._evaluator = AnswerEvaluator(self._deal(), timing=self._timing)
        logger.info("entered %s (%s)", self._mode.value, self._difficulty.value)
        self._announce(self._evaluator.question)

    @property
    def mode(self) -> GameMode:
        return self._mode

    @property
    def difficulty(self) -> Difficulty:
        return self._difficulty

    @difficulty.setter
    def difficulty(self, tier: Difficulty) -> None:
        # Applies from the next generated question.
        self._difficulty = Difficulty(tier)

    @property
    def state(self) -> SessionState:
        return self._evaluator.state

    @property
    def question(self) -> Question:
        return self._evaluator.question

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_callbacks(self) -> int:
        return self._scheduler.pending_count

    def submit(self, value: int) -> bool:
        """Submit an answer. Returns True if it changed the session."""

        if self._closed:
            return False
        question_id = self._evaluator.question.id
        effects = self._evaluator.submit(int(value))
        if not effects:
            return False
        if self._evaluator.state.locked:
            logger.info("correct answer %d for question %d", value, question_id)
        self._run(effects, question_id)
        return True

    def regenerate(self) -> Question:
        if self._closed:
            raise RuntimeError("session has been torn down")
        question = self._deal()
        self._evaluator.replace_question(question)
        self._announce(question)
        return question

    def update(self) -> int:
        if self._closed:
            return 0
        return self._scheduler.update()

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._scheduler.cancel_all()
        self._speaker.stop()
        logger.info("left %s", self._mode.value)

    def _active_question_id(self) -> int | None:
        if self._closed:
            return None
        return self._evaluator.question.id

    def _deal(self) -> Question:
        rng_range = self._profile.resolve_range(self._mode, self._difficulty)
        return self._generator.next_question(rng_range)

    def _announce(self, question: Question) -> None:
        operands = question.operands
        if isinstance(operands, AdditionOperands):
            self._run(
                (After(self._timing.intro_delay_s, (Speak(f"{operands.a} plus {operands.b}"),), label="intro"),),
                question.id,
            )
        else:
            self._speaker.speak(COUNTING_INTRO)

    def _run(self, effects: tuple[Effect, ...], question_id: int) -> None:
        for effect in effects:
            if isinstance(effect, Speak):
                self._speaker.speak(effect.text)
            elif isinstance(effect, PlaySound):
                self._sounds.play(effect.kind)
            elif isinstance(effect, Reward):
                self._on_correct()
            elif isinstance(effect, RequestNextQuestion):
                self.regenerate()
            elif isinstance(effect, After):
                self._scheduler.schedule(
                    effect.delay_s,
                    question_id,
                    self._deferred(effect, question_id),
                    label=effect.label,
                )

    def _deferred(self, effect: After, question_id: int) -> Callable[[], None]:
        def fire() -> None:
            if effect.idle_only and self._evaluator.state.locked:
                return
            self._run(effect.effects, question_id)

        return fire
