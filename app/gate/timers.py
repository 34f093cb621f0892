"""Single wall-clock timer handle owned by the capture gate."""

from __future__ import annotations

from typing import Optional


class StateTimer:
    """Deadline armed on entering a timed phase and cancelled on leaving it.

    The timer does not schedule callbacks; the gate checks ``expired`` against
    its clock on every tick or poll, so variable frame rates do not stretch it.
    """

    def __init__(self) -> None:
        self._deadline: Optional[float] = None
        self._owner: Optional[str] = None
        self.arm_count = 0
        self.cancel_count = 0

    @property
    def armed(self) -> bool:
        return self._deadline is not None

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def arm(self, deadline: float, owner: str) -> None:
        self._deadline = deadline
        self._owner = owner
        self.arm_count += 1

    def cancel(self) -> None:
        if self._deadline is not None:
            self.cancel_count += 1
        self._deadline = None
        self._owner = None

    def expired(self, now: float) -> bool:
        return self._deadline is not None and now >= self._deadline

    def remaining(self, now: float) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - now)
