from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class ConfigurationError(ValueError):
    """A difficulty table that cannot support question generation."""


class GameMode(str, Enum):
    COUNTING = "counting"
    ADDITION = "addition"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# Every question offers the answer plus two distractors.
MIN_DISTINCT_VALUES = 3

# Both addends are at least 1.
MIN_ADDITION_SUM = 2


@dataclass(frozen=True, slots=True)
class DifficultyRange:
    """Inclusive integer range ``[min, max]``."""

    min: int
    max: int

    @property
    def size(self) -> int:
        return self.max - self.min + 1

    def __contains__(self, value: object) -> bool:
        return isinstance(value, int) and self.min <= value <= self.max


DEFAULT_RANGES: dict[tuple[GameMode, Difficulty], DifficultyRange] = {
    (GameMode.COUNTING, Difficulty.EASY): DifficultyRange(1, 5),
    (GameMode.COUNTING, Difficulty.MEDIUM): DifficultyRange(6, 10),
    (GameMode.COUNTING, Difficulty.HARD): DifficultyRange(11, 20),
    # Addition ranges bound the sum, not the operands.
    (GameMode.ADDITION, Difficulty.EASY): DifficultyRange(2, 5),
    (GameMode.ADDITION, Difficulty.MEDIUM): DifficultyRange(6, 10),
    (GameMode.ADDITION, Difficulty.HARD): DifficultyRange(11, 20),
}


def validate_range(rng: DifficultyRange, *, label: str = "range") -> None:
    if rng.min < 1:
        raise ConfigurationError(f"{label}: min must be >= 1 (got {rng.min})")
    if rng.min > rng.max:
        raise ConfigurationError(f"{label}: min must be <= max (got {rng.min}..{rng.max})")
    if rng.size < MIN_DISTINCT_VALUES:
        raise ConfigurationError(
            f"{label}: needs at least {MIN_DISTINCT_VALUES} values (got {rng.min}..{rng.max})"
        )


class DifficultyProfile:
    """Lookup table (mode, tier) -> range, validated once at construction.

    A profile that was built successfully can always answer
    :meth:`resolve_range`; a broken table fails here instead of during play.
    """

    def __init__(self, ranges: Mapping[tuple[GameMode, Difficulty], DifficultyRange] | None = None) -> None:
        table = dict(DEFAULT_RANGES if ranges is None else ranges)
        for mode in GameMode:
            for tier in Difficulty:
                key = (mode, tier)
                if key not in table:
                    raise ConfigurationError(f"missing range for {mode.value}/{tier.value}")
                validate_range(table[key], label=f"{mode.value}/{tier.value}")
                if mode is GameMode.ADDITION and table[key].min < MIN_ADDITION_SUM:
                    raise ConfigurationError(
                        f"{mode.value}/{tier.value}: sums must start at {MIN_ADDITION_SUM} (got {table[key].min})"
                    )
        self._ranges = table

    def resolve_range(self, mode: GameMode, tier: Difficulty) -> DifficultyRange:
        return self._ranges[(GameMode(mode), Difficulty(tier))]


DEFAULT_PROFILE = DifficultyProfile()


def resolve_range(mode: GameMode, tier: Difficulty) -> DifficultyRange:
    return DEFAULT_PROFILE.resolve_range(mode, tier)
