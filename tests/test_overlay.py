"""Guide rendering on preview frames."""

from __future__ import annotations

import numpy as np
import pytest

from contracts import CoachSpec, FrameAnalysis, OverlayKind, QualityMetrics, SubjectScore
from ui import coaching_lines, draw_guide, guide_mask


def _analysis(ok: bool) -> FrameAnalysis:
    metrics = QualityMetrics(ok, ok, ok, ok, 80.0, 120.0, 2000.0, 0.0)
    return FrameAnalysis(metrics, SubjectScore(0.5, ok, OverlayKind.RING))


class TestGuideMask:
    def test_ring_centered_low(self) -> None:
        mask = guide_mask((480, 640, 3), OverlayKind.RING)
        assert mask[int(480 * 0.6), 320] == 255
        assert mask[10, 10] == 0

    def test_oval_is_wide(self) -> None:
        mask = guide_mask((480, 640), OverlayKind.OVAL)
        row = int(480 * 0.62)
        assert mask[row, 320 - int(640 * 0.3)] == 255
        assert mask[40, 320] == 0

    def test_trapezoid_narrow_at_top(self) -> None:
        mask = guide_mask((480, 640), OverlayKind.TRAPEZOID)
        assert mask[int(480 * 0.2), 100] == 0
        assert mask[int(480 * 0.8), 100] == 255

    def test_rectangle_padding(self) -> None:
        mask = guide_mask((480, 640), "rectangle")
        assert mask[5, 5] == 0
        assert mask[240, 320] == 255

    def test_none_covers_everything(self) -> None:
        assert guide_mask((120, 160), OverlayKind.NONE).min() == 255


class TestDrawGuide:
    def test_returns_shaded_copy(self) -> None:
        image = np.full((480, 640, 3), 200, dtype=np.uint8)
        spec = CoachSpec(OverlayKind.RING, "Put the wheel inside the ring • Show tread", coin_mode=True)

        canvas = draw_guide(image, spec)

        assert canvas is not image
        assert image.min() == 200
        assert canvas.shape == image.shape
        assert abs(int(canvas[470, 5, 0]) - 130) <= 1
        assert canvas[int(480 * 0.6), 320, 0] == 200

    def test_chips_and_countdown_drawn(self) -> None:
        image = np.full((480, 640, 3), 120, dtype=np.uint8)
        spec = CoachSpec(OverlayKind.NONE, "Center the car and hold steady")
        plain = draw_guide(image, spec)
        green = draw_guide(image, spec, analysis=_analysis(True), countdown=2, capture_enabled=True)
        red = draw_guide(image, spec, analysis=_analysis(False))

        assert not np.array_equal(plain, green)
        assert not np.array_equal(green, red)
        assert not np.array_equal(plain[200:280, 280:360], green[200:280, 280:360])

    def test_grayscale_input_is_converted(self) -> None:
        image = np.full((240, 320), 100, dtype=np.uint8)
        canvas = draw_guide(image, CoachSpec(OverlayKind.OVAL, "Aim under the car"))
        assert canvas.shape == (240, 320, 3)


@pytest.mark.parametrize("overlay", list(OverlayKind))
def test_every_overlay_has_coaching_lines(overlay: OverlayKind) -> None:
    lines = coaching_lines(overlay)
    assert lines
    lines.append("x")
    assert "x" not in coaching_lines(overlay)
