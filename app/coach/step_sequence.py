"""Fixed shot list with navigation and the gallery of kept photos."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from app.coach.capture_coach import CaptureCoach
from configs.settings import DEFAULT_STEPS
from contracts import CaptureArtifact, CoachSpec
from log_config.logger import get_logger

logger = get_logger(__name__)


class StepSequence:
    """Current step index over an ordered list of step names.

    Keeping a photo records it and advances; the index never moves past the
    last step, which stays current until the operator is done.
    """

    def __init__(self, steps: Sequence[str] = DEFAULT_STEPS, start: int = 0) -> None:
        if not steps:
            raise ValueError("StepSequence needs at least one step")
        self.steps = tuple(steps)
        self._index = max(0, min(start, len(self.steps) - 1))
        self._photos: List[CaptureArtifact] = []

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> str:
        return self.steps[self._index]

    @property
    def is_last(self) -> bool:
        return self._index >= len(self.steps) - 1

    @property
    def photos(self) -> List[CaptureArtifact]:
        return list(self._photos)

    @property
    def done(self) -> bool:
        """Every step has at least one kept photo."""
        captured = {p.step_name for p in self._photos}
        return all(step in captured for step in self.steps)

    def progress_label(self) -> str:
        return f"{self.current} - {self._index + 1} / {len(self.steps)}"

    def index_of(self, step_name: str) -> int:
        lowered = step_name.strip().lower()
        for i, step in enumerate(self.steps):
            if step.lower() == lowered:
                return i
        raise ValueError(f"Unknown step: {step_name}")

    def record(self, artifact: CaptureArtifact) -> bool:
        """Add a kept photo; advances and returns True unless on the last step."""
        self._photos.append(artifact)
        if self.is_last:
            return False
        self._index += 1
        return True

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        return True

    def skip(self) -> bool:
        if self.is_last:
            return False
        self._index += 1
        return True


class CoachSession:
    """Keeps a ``CaptureCoach`` pointed at the sequence's current step."""

    def __init__(
        self,
        coach: CaptureCoach,
        sequence: Optional[StepSequence] = None,
        on_step: Optional[Callable[[str, CoachSpec], None]] = None,
    ) -> None:
        self.coach = coach
        self.sequence = sequence or StepSequence(coach.config.session.steps)
        self._on_step = on_step
        self._enter()

    def _enter(self) -> CoachSpec:
        spec = self.coach.set_step(self.sequence.current)
        if self._on_step is not None:
            self._on_step(self.sequence.current, spec)
        return spec

    def keep(self) -> CaptureArtifact:
        artifact = self.coach.keep()
        if self.sequence.record(artifact):
            self._enter()
        else:
            logger.info(f"Last step kept; {len(self.sequence.photos)} photos in gallery")
        return artifact

    def retake(self) -> None:
        self.coach.retake()

    def back(self) -> bool:
        if not self.sequence.back():
            return False
        self._enter()
        return True

    def skip(self) -> bool:
        if not self.sequence.skip():
            return False
        self._enter()
        return True
