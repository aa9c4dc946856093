"""
Cancellation generations.

Every top-level scan invocation mints a new generation. Passes capture a
token for the generation they started in and check it whenever they
resume from a suspension point; a stale token means a newer invocation
took over and the pass must end without side effects.
"""

from __future__ import annotations


class CancellationGeneration:
    """Monotonic generation counter owned by one orchestrator."""

    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def mint(self) -> "GenerationToken":
        """Start a new generation, invalidating every earlier token."""
        self._current += 1
        return GenerationToken(self, self._current)

    def invalidate(self) -> None:
        """Invalidate the live generation without starting a new one."""
        self._current += 1


class GenerationToken:
    """Generation captured at the start of an invocation."""

    def __init__(self, owner: CancellationGeneration, value: int) -> None:
        self._owner = owner
        self.value = value

    @property
    def is_current(self) -> bool:
        return self._owner.current == self.value

    def __repr__(self) -> str:
        return f"GenerationToken(value={self.value}, current={self.is_current})"
