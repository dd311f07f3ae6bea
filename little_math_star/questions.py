"""Procedural question generation for the counting and addition games.

Everything here is deterministic given a seeded random source: a generator
samples the correct value inside a difficulty range, asks a
``DistractorSampler`` for two plausible wrong values, and shuffles the three
options with Fisher-Yates.  There is no pygame dependency so the generators
can be exercised headlessly and in bulk.
"""

from __future__ import annotations

import itertools
import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from .difficulty import MIN_ADDITION_SUM, ConfigurationError, DifficultyRange, GameMode, validate_range

logger = logging.getLogger(__name__)

T = TypeVar("T")

OPTION_COUNT = 3

COUNTING_GLYPHS: tuple[str, ...] = (
    "apple",
    "banana",
    "dog",
    "cat",
    "frog",
    "duck",
    "balloon",
    "star",
    "cookie",
    "car",
)
ADDITION_GLYPHS: tuple[str, ...] = ("apple", "cookie", "balloon", "duck", "cat", "star")

COUNTING_NEIGHBORHOOD = 3
ADDITION_NEIGHBORHOOD = 2


class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int:
        """Uniform integer in ``[a, b]`` inclusive."""
        ...

    def choice(self, seq: Sequence[T]) -> T:
        ...


class SeededRng:
    """Seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)


def shuffled(items: Sequence[T], rng: RandomSource) -> list[T]:
    """Return a uniformly shuffled copy of ``items`` (Fisher-Yates)."""

    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


_QUESTION_IDS = itertools.count(1)


def next_question_id() -> int:
    """Process-wide unique question id."""
    return next(_QUESTION_IDS)


@dataclass(frozen=True, slots=True)
class CountingOperands:
    count: int


@dataclass(frozen=True, slots=True)
class AdditionOperands:
    a: int
    b: int


@dataclass(frozen=True, slots=True)
class Question:
    id: int
    mode: GameMode
    prompt: str
    glyph: str
    operands: CountingOperands | AdditionOperands
    correct_answer: int
    options: tuple[int, ...]

    def __post_init__(self) -> None:
        if self.correct_answer < 1:
            raise ValueError("correct_answer must be positive")
        if len(self.options) != OPTION_COUNT or len(set(self.options)) != OPTION_COUNT:
            raise ValueError(f"options must be {OPTION_COUNT} distinct values: {self.options}")
        if any(v < 1 for v in self.options):
            raise ValueError(f"options must be positive: {self.options}")
        if self.correct_answer not in self.options:
            raise ValueError("options must contain the correct answer")
        if isinstance(self.operands, AdditionOperands):
            if self.operands.a < 1 or self.operands.b < 1:
                raise ValueError("addends must be >= 1")
            if self.operands.a + self.operands.b != self.correct_answer:
                raise ValueError("addends must sum to the correct answer")

    def has_option(self, value: int) -> bool:
        return value in self.options


class DistractorSampler:
    """Draws two distinct, positive wrong answers near the correct one.

    Each round first tries ``correct + offset`` with a non-zero offset from
    ``[-neighborhood, neighborhood]``.  If that candidate is non-positive or
    already taken, it falls back to a uniform draw over the unused values of
    ``[1, max + 2]``.  The fallback pool always has a free value once the
    range holds at least three integers, so every round adds exactly one
    distractor and sampling ends after two rounds.
    """

    def __init__(self, rng: RandomSource, *, neighborhood: int) -> None:
        if neighborhood < 1:
            raise ValueError("neighborhood must be >= 1")
        self._rng = rng
        self._offsets = [d for d in range(-neighborhood, neighborhood + 1) if d != 0]

    def sample(self, correct: int, rng_range: DifficultyRange) -> frozenset[int]:
        validate_range(rng_range, label="distractor range")
        if correct < 1:
            raise ValueError("correct must be positive")

        used = {correct}
        picked: list[int] = []
        while len(used) < OPTION_COUNT:
            candidate = correct + self._rng.choice(self._offsets)
            if candidate < 1 or candidate in used:
                pool = [v for v in range(1, rng_range.max + 3) if v not in used]
                candidate = self._rng.choice(pool)
            used.add(candidate)
            picked.append(candidate)
        return frozenset(picked)


class _QuestionGenerator:
    mode: GameMode

    def __init__(
        self,
        *,
        seed: int | None = None,
        rng: RandomSource | None = None,
        neighborhood: int,
        glyphs: Sequence[str],
        id_source: Callable[[], int] = next_question_id,
    ) -> None:
        if not glyphs:
            raise ValueError("glyphs must not be empty")
        self._rng: RandomSource = rng if rng is not None else SeededRng(seed)
        self._sampler = DistractorSampler(self._rng, neighborhood=neighborhood)
        self._glyphs = tuple(glyphs)
        self._id_source = id_source

    def _pick_glyph(self) -> str:
        return self._rng.choice(self._glyphs)

    def _assemble(
        self,
        *,
        prompt: str,
        glyph: str,
        operands: CountingOperands | AdditionOperands,
        correct: int,
        rng_range: DifficultyRange,
    ) -> Question:
        distractors = self._sampler.sample(correct, rng_range)
        # Sort before shuffling so the option order depends only on the rng.
        options = shuffled(sorted({correct, *distractors}), self._rng)
        question = Question(
            id=self._id_source(),
            mode=self.mode,
            prompt=prompt,
            glyph=glyph,
            operands=operands,
            correct_answer=correct,
            options=tuple(options),
        )
        logger.debug("generated %s question %d: %r options=%s", self.mode.value, question.id, prompt, options)
        return question


class CountingGenerator(_QuestionGenerator):
    """``How many <glyph>s?`` with a count drawn from the tier range."""

    mode = GameMode.COUNTING

    def __init__(
        self,
        *,
        seed: int | None = None,
        rng: RandomSource | None = None,
        glyphs: Sequence[str] = COUNTING_GLYPHS,
        id_source: Callable[[], int] = next_question_id,
    ) -> None:
        super().__init__(
            seed=seed,
            rng=rng,
            neighborhood=COUNTING_NEIGHBORHOOD,
            glyphs=glyphs,
            id_source=id_source,
        )

    def next_question(self, rng_range: DifficultyRange) -> Question:
        validate_range(rng_range, label="counting range")
        count = self._rng.randint(rng_range.min, rng_range.max)
        return self.build_question(count, rng_range)

    def build_question(self, count: int, rng_range: DifficultyRange, *, glyph: str | None = None) -> Question:
        glyph = glyph if glyph is not None else self._pick_glyph()
        return self._assemble(
            prompt=f"Can you count the {glyph}s?",
            glyph=glyph,
            operands=CountingOperands(count=count),
            correct=count,
            rng_range=rng_range,
        )


class AdditionGenerator(_QuestionGenerator):
    """``a plus b equals?`` where the sum is drawn from the tier range."""

    mode = GameMode.ADDITION

    def __init__(
        self,
        *,
        seed: int | None = None,
        rng: RandomSource | None = None,
        glyphs: Sequence[str] = ADDITION_GLYPHS,
        id_source: Callable[[], int] = next_question_id,
    ) -> None:
        super().__init__(
            seed=seed,
            rng=rng,
            neighborhood=ADDITION_NEIGHBORHOOD,
            glyphs=glyphs,
            id_source=id_source,
        )

    def next_question(self, rng_range: DifficultyRange) -> Question:
        validate_range(rng_range, label="addition range")
        if rng_range.min < MIN_ADDITION_SUM:
            raise ConfigurationError(f"addition range: sums must start at {MIN_ADDITION_SUM} (got {rng_range.min})")
        glyph = self._pick_glyph()
        total = self._rng.randint(rng_range.min, rng_range.max)
        a = self._rng.randint(1, total - 1)
        return self.build_question(a, total - a, rng_range, glyph=glyph)

    def build_question(self, a: int, b: int, rng_range: DifficultyRange, *, glyph: str | None = None) -> Question:
        glyph = glyph if glyph is not None else self._pick_glyph()
        return self._assemble(
            prompt=f"{a} plus {b} equals?",
            glyph=glyph,
            operands=AdditionOperands(a=a, b=b),
            correct=a + b,
            rng_range=rng_range,
        )


QuestionGenerator = CountingGenerator | AdditionGenerator


def generator_for_mode(mode: GameMode, *, seed: int | None = None) -> QuestionGenerator:
    if GameMode(mode) is GameMode.COUNTING:
        return CountingGenerator(seed=seed)
    return AdditionGenerator(seed=seed)
