from __future__ import annotations

import heapq
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    """Monotonic clock abstraction.

    The scheduler depends on this interface rather than calling real time
    directly, so tests can drive it with a fake clock.
    """

    def now(self) -> float:
        """Return monotonic seconds."""
        ...


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


@dataclass(frozen=True, slots=True)
class FeedbackTiming:
    success_delay_s: float = 1.0
    next_question_delay_s: float = 1.0
    retry_delay_s: float = 1.0
    intro_delay_s: float = 0.5

    def __post_init__(self) -> None:
        for name in ("success_delay_s", "next_question_delay_s", "retry_delay_s", "intro_delay_s"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")


@dataclass(slots=True)
class _Pending:
    token: int
    due_s: float
    question_id: int
    callback: Callable[[], None]
    label: str


class FeedbackScheduler:
    """Delayed callbacks tagged with the question they were scheduled for.

    Cooperative: nothing fires until :meth:`update` is called (once per
    frame by the UI, or explicitly by tests after advancing a fake clock).
    At fire time the tag is compared with ``current_id()``; a callback whose
    question has been replaced is dropped without running.
    """

    def __init__(self, *, clock: Clock, current_id: Callable[[], int | None]) -> None:
        self._clock = clock
        self._current_id = current_id
        self._heap: list[tuple[float, int]] = []
        self._pending: dict[int, _Pending] = {}
        self._next_token = 1

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(
        self,
        delay_s: float,
        question_id: int,
        callback: Callable[[], None],
        *,
        label: str = "",
    ) -> int:
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        token = self._next_token
        self._next_token += 1
        due = self._clock.now() + float(delay_s)
        self._pending[token] = _Pending(token, due, int(question_id), callback, label)
        heapq.heappush(self._heap, (due, token))
        logger.debug("scheduled %s for question %d in %.2fs", label or "callback", question_id, delay_s)
        return token

    def cancel(self, token: int) -> bool:
        # Heap entries without a pending record are skipped lazily.
        return self._pending.pop(token, None) is not None

    def cancel_all(self) -> int:
        count = len(self._pending)
        self._pending.clear()
        self._heap.clear()
        if count:
            logger.debug("cancelled %d pending callbacks", count)
        return count

    def next_due_s(self) -> float | None:
        while self._heap and self._heap[0][1] not in self._pending:
            heapq.heappop(self._heap)
        return self._heap[0][0] if self._heap else None

    def update(self) -> int:
        """Fire every callback that is due. Returns how many actually ran."""

        now = self._clock.now()
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, token = heapq.heappop(self._heap)
            entry = self._pending.pop(token, None)
            if entry is None:
                continue
            if entry.question_id != self._current_id():
                logger.debug("dropped stale %s for question %d", entry.label or "callback", entry.question_id)
                continue
            entry.callback()
            fired += 1
        return fired
