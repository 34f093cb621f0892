"""OpenCV rendering of the capture guide onto a live preview frame."""

from __future__ import annotations

from typing import List, Optional, Tuple

import cv2
import numpy as np

from contracts import CoachSpec, FrameAnalysis, OverlayKind

Color = Tuple[int, int, int]

GREEN: Color = (80, 200, 80)
RED: Color = (60, 60, 220)
WHITE: Color = (255, 255, 255)
BLACK: Color = (0, 0, 0)

SHADE_ALPHA = 0.35
BANNER_HEIGHT = 36
RECT_PAD = 20

COACHING_LINES = {
    OverlayKind.TRAPEZOID: [
        "Stand back so the car fills the frame.",
        "Keep the bottom of the car on the dashed line.",
        "Hold the phone steady for a second.",
    ],
    OverlayKind.RING: [
        "Put the wheel inside the ring.",
        "Show some tire tread too.",
        "Hold steady - photo grabs itself.",
    ],
    OverlayKind.RECTANGLE: [
        "Fill the box with the windshield or dashboard.",
        'If the dash is on: "Key on, engine off."',
        "Hold steady - photo grabs itself.",
    ],
    OverlayKind.OVAL: [
        "Kneel and aim under the car.",
        "Make sure the oval is mostly filled.",
        "When the button turns dark, tap to take it.",
    ],
    OverlayKind.NONE: [
        "Frame the car. Keep your hands steady.",
        "We'll take the photo when it looks good.",
    ],
}


def coaching_lines(overlay: OverlayKind) -> List[str]:
    """Plain-language instructions shown under the preview."""
    return list(COACHING_LINES[OverlayKind.parse(overlay)])


def _trapezoid(width: int, height: int) -> np.ndarray:
    return np.array(
        [
            (int(width * 0.2), int(height * 0.18)),
            (int(width * 0.8), int(height * 0.18)),
            (int(width * 0.92), int(height * 0.83)),
            (int(width * 0.08), int(height * 0.83)),
        ],
        dtype=np.int32,
    )


def guide_mask(shape: Tuple[int, ...], overlay: OverlayKind) -> np.ndarray:
    """255 inside the guide cut-out, 0 where the preview is shaded."""
    height, width = shape[:2]
    overlay = OverlayKind.parse(overlay)
    mask = np.zeros((height, width), dtype=np.uint8)
    if overlay == OverlayKind.TRAPEZOID:
        cv2.fillPoly(mask, [_trapezoid(width, height)], 255)
    elif overlay == OverlayKind.RING:
        radius = int(height * 0.24)
        cv2.circle(mask, (width // 2, int(height * 0.6)), radius, 255, -1)
    elif overlay == OverlayKind.RECTANGLE:
        cv2.rectangle(mask, (RECT_PAD, RECT_PAD), (width - RECT_PAD, height - RECT_PAD), 255, -1)
    elif overlay == OverlayKind.OVAL:
        axes = (int(width * 0.33), int(height * 0.18))
        cv2.ellipse(mask, (width // 2, int(height * 0.62)), axes, 0, 0, 360, 255, -1)
    else:
        mask[:] = 255
    return mask


def _dashed_line(image: np.ndarray, start: Tuple[int, int], end: Tuple[int, int], color: Color,
                 dash: int = 6, gap: int = 4) -> None:
    x0, y0 = start
    x1, y1 = end
    length = float(np.hypot(x1 - x0, y1 - y0))
    if length == 0:
        return
    dx, dy = (x1 - x0) / length, (y1 - y0) / length
    pos = 0.0
    while pos < length:
        seg_end = min(pos + dash, length)
        p0 = (int(x0 + dx * pos), int(y0 + dy * pos))
        p1 = (int(x0 + dx * seg_end), int(y0 + dy * seg_end))
        cv2.line(image, p0, p1, color, 1, cv2.LINE_AA)
        pos += dash + gap


def _ascii(text: str) -> str:
    # Hershey fonts only cover ASCII.
    return text.replace("•", "|").encode("ascii", "replace").decode("ascii")


def _chip(image: np.ndarray, x: int, y: int, label: str, ok: bool) -> int:
    (tw, th), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.4, 1)
    cv2.rectangle(image, (x, y), (x + tw + 10, y + th + 8), GREEN if ok else RED, -1)
    cv2.putText(image, label, (x + 5, y + th + 4), cv2.FONT_HERSHEY_SIMPLEX, 0.4, WHITE, 1, cv2.LINE_AA)
    return x + tw + 16


def draw_guide(
    image: np.ndarray,
    spec: CoachSpec,
    analysis: Optional[FrameAnalysis] = None,
    countdown: int = 0,
    capture_enabled: bool = False,
) -> np.ndarray:
    """Return a copy of ``image`` with the guide, tip banner, sensor chips and countdown."""
    canvas = image.copy() if image.ndim == 3 else cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    height, width = canvas.shape[:2]
    overlay = OverlayKind.parse(spec.overlay)

    mask = guide_mask(canvas.shape, overlay)
    shaded = (canvas.astype(np.float32) * (1.0 - SHADE_ALPHA)).astype(np.uint8)
    outside = mask == 0
    canvas[outside] = shaded[outside]

    if overlay == OverlayKind.TRAPEZOID:
        y = int(height * 0.82)
        _dashed_line(canvas, (int(width * 0.1), y), (int(width * 0.9), y), WHITE)

    banner = canvas[:BANNER_HEIGHT].astype(np.float32) * 0.4
    canvas[:BANNER_HEIGHT] = banner.astype(np.uint8)
    cv2.putText(canvas, _ascii(spec.tip), (10, 22), cv2.FONT_HERSHEY_SIMPLEX, 0.45, WHITE, 1, cv2.LINE_AA)
    if spec.coin_mode:
        cv2.putText(canvas, "Tip: Hold coin at wear bars", (10, 33), cv2.FONT_HERSHEY_SIMPLEX, 0.32, WHITE, 1, cv2.LINE_AA)

    if analysis is not None:
        m = analysis.metrics
        x = 10
        y = BANNER_HEIGHT + 6
        for label, ok in (
            ("Sharp", m.sharp),
            ("No Glare", m.glare_safe),
            ("Exposure", m.exposure_ok),
            ("Level", m.level_ok),
            ("Subject", analysis.subject.passed),
        ):
            x = _chip(canvas, x, y, label, ok)

    if countdown > 0:
        center = (width // 2, height // 2)
        radius = max(20, min(width, height) // 10)
        cv2.circle(canvas, center, radius, BLACK, -1)
        text = str(countdown)
        scale = radius / 20.0
        (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, scale, 2)
        cv2.putText(canvas, text, (center[0] - tw // 2, center[1] + th // 2),
                    cv2.FONT_HERSHEY_SIMPLEX, scale, WHITE, 2, cv2.LINE_AA)

    button = (width - 30, height - 30)
    cv2.circle(canvas, button, 18, WHITE if capture_enabled else (120, 120, 120), -1 if capture_enabled else 2)
    return canvas
