import numpy as np
import pytest

from capture import SimulatedCamera, downsample
from capture.simulated_camera import blank_scene
from exceptions import SourceReadError, SourceUnavailableError


def test_read_frame_is_downsampled_and_snapshot_is_full_resolution() -> None:
    camera = SimulatedCamera(scene="wheel", width=1280, height=960, analysis_width=320)
    camera.open()

    frame = camera.read_frame(timeout_ms=100)
    snap = camera.snapshot()

    assert (frame.width, frame.height) == (320, 240)
    assert (snap.width, snap.height) == (1280, 960)
    assert frame.pixfmt == "BGR24"
    assert camera.get_stats().snapshots == 1
    assert camera.get_stats().frames_read == 1


def test_frames_cycle() -> None:
    frames = [blank_scene(value=10), blank_scene(value=20)]
    camera = SimulatedCamera(frames=frames)
    camera.open()
    values = [int(camera.read_frame(100).image[0, 0, 0]) for _ in range(3)]
    assert values == [10, 20, 10]


def test_snapshot_is_a_copy() -> None:
    camera = SimulatedCamera(frames=[blank_scene()])
    camera.open()
    snap = camera.snapshot()
    snap.image[:] = 0
    assert camera.snapshot().image[0, 0, 0] == 128


def test_read_before_open_raises() -> None:
    with pytest.raises(SourceReadError):
        SimulatedCamera().read_frame(100)


def test_failed_open_raises_unavailable() -> None:
    camera = SimulatedCamera(fail_open="Camera permission denied")
    with pytest.raises(SourceUnavailableError, match="denied"):
        camera.open()
    assert not camera.is_open


def test_close_is_idempotent() -> None:
    camera = SimulatedCamera()
    camera.open()
    camera.close()
    camera.close()
    assert camera.close_count == 1
    assert not camera.is_open


def test_empty_frame_list_rejected() -> None:
    with pytest.raises(ValueError):
        SimulatedCamera(frames=[])


def test_downsample_keeps_small_images() -> None:
    image = np.zeros((100, 200, 3), dtype=np.uint8)
    assert downsample(image, 320) is image
    assert downsample(np.zeros((480, 640, 3), dtype=np.uint8), 320).shape == (240, 320, 3)
