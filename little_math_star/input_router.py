from __future__ import annotations

from collections.abc import Callable, Sequence

# The 0 key stands in for 10, the only two-digit value a single key can reach.
ZERO_KEY_VALUE = 10


def digit_from_key(key: str) -> int | None:
    """Map a single typed character to its answer value (``"0"`` -> 10)."""

    if len(key) != 1 or key not in "0123456789":
        return None
    value = int(key)
    return ZERO_KEY_VALUE if value == 0 else value


class InputRouter:
    """Funnels keyboard digits and option clicks into one ``submit`` callable.

    ``options`` is read at event time so the router always checks against the
    question that is on screen right now.
    """

    def __init__(
        self,
        *,
        submit: Callable[[int], object],
        options: Callable[[], Sequence[int] | None],
    ) -> None:
        self._submit = submit
        self._options = options

    def key(self, key: str) -> bool:
        """Route a typed key. Returns True if a submission was made."""

        value = digit_from_key(key)
        if value is None:
            return False
        options = self._options()
        if not options or value not in options:
            return False
        self._submit(value)
        return True

    def click(self, value: int) -> bool:
        # Only rendered options are clickable, so the value goes straight through.
        self._submit(int(value))
        return True
