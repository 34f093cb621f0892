"""Run a coaching session against a camera or the simulated source."""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Optional

import cv2

from app.coach import CaptureCoach, CoachSession, CoachStatus, StepSequence
from app.gate.states import GatePhase
from capture import OpenCVCamera, SimulatedCamera, VideoSource
from capture.simulated_camera import textured_scene, undercarriage_scene, wheel_scene
from configs.settings import AppConfig, load_config
from contracts import CaptureArtifact, CoachSpec, Frame, OverlayKind
from exceptions import ConfigError, SourceReadError
from log_config.logger import get_logger
from ui.overlay import coaching_lines, draw_guide

logger = get_logger(__name__)

WINDOW_NAME = "Capture Coach"
SIM_WIDTH = 1280
SIM_HEIGHT = 960


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Guided vehicle photo capture.")
    parser.add_argument("--config", type=Path, default=None, help="YAML config path.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--camera", type=int, default=None, help="Camera index (overrides config).")
    source.add_argument("--simulated", action="store_true", help="Use synthetic frames instead of a camera.")
    parser.add_argument("--output", type=Path, default=Path("captures"), help="Directory for kept photos.")
    parser.add_argument("--headless", action="store_true", help="No preview window.")
    parser.add_argument("--auto-keep", action="store_true", help="Keep every photo without review.")
    parser.add_argument("--step", default=None, help="Step name to start at.")
    parser.add_argument("--max-ticks", type=int, default=None, help="Stop after this many frames.")
    return parser.parse_args(argv)


def artifact_filename(index: int, artifact: CaptureArtifact) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", artifact.step_name.lower()).strip("_") or "photo"
    return f"{index:02d}_{slug}.jpg"


def simulated_frame(overlay: OverlayKind):
    if overlay == OverlayKind.RING:
        return wheel_scene(SIM_WIDTH, SIM_HEIGHT)
    if overlay == OverlayKind.OVAL:
        return undercarriage_scene(SIM_WIDTH, SIM_HEIGHT)
    return textured_scene(SIM_WIDTH, SIM_HEIGHT)


def build_source(args: argparse.Namespace, config: AppConfig) -> VideoSource:
    cam = config.camera
    if args.simulated:
        return SimulatedCamera(
            scene="textured",
            width=SIM_WIDTH,
            height=SIM_HEIGHT,
            analysis_width=cam.analysis_width,
            fps=cam.fps,
        )
    return OpenCVCamera(
        index=cam.index if args.camera is None else args.camera,
        width=cam.width,
        height=cam.height,
        fps=cam.fps,
        analysis_width=cam.analysis_width,
        open_timeout_s=cam.open_timeout_s,
    )


class _Writer:
    """Persists kept artifacts as JPEG files."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.count = 0

    def __call__(self, artifact: CaptureArtifact) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.count += 1
        path = self.output_dir / artifact_filename(self.count, artifact)
        path.write_bytes(artifact.image_bytes)
        print(f"Saved {artifact.step_name}: {path}")


def _read_preview_frame(source: VideoSource, config: AppConfig) -> Optional[Frame]:
    """One analysis frame for both the tick and the preview; None when the read failed."""
    try:
        return source.read_frame(config.camera.read_timeout_ms)
    except SourceReadError as e:
        logger.warning(f"Preview frame skipped: {e}")
        return None


def _handle_key(key: int, session: CoachSession) -> bool:
    """Apply one keypress; returns False to quit."""
    coach = session.coach
    if key == ord("q"):
        return False
    if key == ord(" "):
        coach.capture_now()
    elif key == ord("k") and coach.phase == GatePhase.REVIEWING:
        session.keep()
    elif key == ord("r") and coach.phase == GatePhase.REVIEWING:
        session.retake()
    elif key == ord("b"):
        session.back()
    elif key == ord("s"):
        session.skip()
    return True


def run_session(args: argparse.Namespace, config: AppConfig) -> int:
    source = build_source(args, config)
    writer = _Writer(args.output)
    sequence = StepSequence(config.session.steps)
    if args.step:
        sequence = StepSequence(config.session.steps, start=sequence.index_of(args.step))

    def on_step(step_name: str, spec: CoachSpec) -> None:
        if isinstance(source, SimulatedCamera):
            source.set_frames([simulated_frame(spec.overlay)])
        print(f"\n{sequence.progress_label()}")
        print(f"  {spec.tip}")
        for line in coaching_lines(spec.overlay):
            print(f"  - {line}")

    logger.info(f"Starting session at '{sequence.current}' ({len(sequence.steps)} steps)")
    with CaptureCoach(source, config=config, on_capture=writer) as coach:
        if coach.status != CoachStatus.LIVE:
            print(f"Error: no video source ({coach.status_reason})", file=sys.stderr)
            return 1

        session = CoachSession(coach, sequence, on_step=on_step)
        running = True
        ticks = 0
        while running:
            if args.max_ticks is not None and ticks >= args.max_ticks:
                break
            frame = None
            if args.headless:
                analysis = coach.tick()
            else:
                frame = _read_preview_frame(source, config)
                analysis = coach.process_frame(frame) if frame is not None else None
            coach.poll()
            ticks += 1

            if coach.phase == GatePhase.REVIEWING and (args.auto_keep or args.headless):
                was_last = sequence.is_last
                session.keep()
                if was_last:
                    break
            elif args.headless and coach.spec.overlay == OverlayKind.OVAL and coach.capture_enabled:
                coach.capture_now()

            if frame is not None:
                view = draw_guide(frame.image, coach.spec, analysis, coach.countdown, coach.capture_enabled)
                cv2.imshow(WINDOW_NAME, view)
                key = cv2.waitKey(1) & 0xFF
                if key != 0xFF and not _handle_key(key, session):
                    running = False

    if not args.headless:
        cv2.destroyAllWindows()
    print(f"\n{writer.count} photos saved to {args.output}")
    return 0


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    try:
        return run_session(args, config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
