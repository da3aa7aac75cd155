"""Shared fixtures: a small on-disk stereo + IMU sequence."""

from collections.abc import Callable, Sequence
from pathlib import Path

import cv2
import numpy as np
import pytest

from vioreplay import ReplayConfig

CALIBRATION = """\
calib_time: 09-Jan-2012 13:57:47
corner_dist: 9.950000e-02
S_02: 1.392000e+03 5.120000e+02
K_02: 9.597910e+02 0.000000e+00 6.960217e+02 0.000000e+00 9.569251e+02 2.241806e+02 0.000000e+00 0.000000e+00 1.000000e+00
D_02: -3.691481e-01 1.968681e-01 1.353473e-03 5.677587e-04 -6.770705e-02
R_02: 1.000000e+00 0.000000e+00 0.000000e+00 0.000000e+00 1.000000e+00 0.000000e+00 0.000000e+00 0.000000e+00 1.000000e+00
T_02: 6.000000e-02 0.000000e+00 0.000000e+00
S_rect_02: 1.242000e+03 3.750000e+02
R_rect_02: 1.000000e+00 0.000000e+00 0.000000e+00 0.000000e+00 1.000000e+00 0.000000e+00 0.000000e+00 0.000000e+00 1.000000e+00
P_rect_02: 7.215377e+02 0.000000e+00 6.095593e+02 4.485728e+01 0.000000e+00 7.215377e+02 1.728540e+02 2.163791e-01 0.000000e+00 0.000000e+00 1.000000e+00 2.745884e-03
S_03: 1.392000e+03 5.120000e+02
K_03: 9.037596e+02 0.000000e+00 6.957519e+02 0.000000e+00 9.019653e+02 2.242509e+02 0.000000e+00 0.000000e+00 1.000000e+00
D_03: -3.639558e-01 1.788651e-01 6.029694e-04 -3.922424e-04
R_03: 1.000000e+00 0.000000e+00 0.000000e+00 0.000000e+00 1.000000e+00 0.000000e+00 0.000000e+00 0.000000e+00 1.000000e+00
T_03: -4.700000e-01 0.000000e+00 0.000000e+00
"""

FRAME_TIMESTAMPS = (100, 200, 300, 400, 500)
IMU_TIMESTAMPS = (150, 250, 260, 350, 450)
IMAGE_SHAPE = (20, 30)

DatasetFactory = Callable[..., Path]


def left_pixel(i: int) -> int:
    """Fill value of the left image of frame i."""
    return i * 40


def right_pixel(i: int) -> int:
    """Fill value of the right image of frame i."""
    return i * 40 + 25


def write_dataset(
    root: Path,
    frame_timestamps: Sequence[int] = FRAME_TIMESTAMPS,
    imu_timestamps: Sequence[int] = IMU_TIMESTAMPS,
    right_timestamps: Sequence[int] | None = None,
    num_right_images: int | None = None,
    calibration: str = CALIBRATION,
) -> Path:
    """Write a flat-layout sequence under root.

    Returns:
        Path to the dataset root
    """
    root.mkdir(parents=True, exist_ok=True)

    left_dir = root / "image_02"
    right_dir = root / "image_03"
    left_dir.mkdir()
    right_dir.mkdir()

    for i in range(len(frame_timestamps)):
        cv2.imwrite(
            str(left_dir / f"{i:010d}.png"),
            np.full(IMAGE_SHAPE, left_pixel(i), dtype=np.uint8),
        )
    for i in range(len(frame_timestamps) if num_right_images is None else num_right_images):
        cv2.imwrite(
            str(right_dir / f"{i:010d}.png"),
            np.full(IMAGE_SHAPE, right_pixel(i), dtype=np.uint8),
        )

    if right_timestamps is None:
        right_timestamps = frame_timestamps
    (left_dir / "timestamps.log").write_text("".join(f"{t}\n" for t in frame_timestamps))
    (right_dir / "timestamps.log").write_text("".join(f"{t}\n" for t in right_timestamps))

    imu_lines = ["# timestamp wx wy wz ax ay az\n"]
    for i, t in enumerate(imu_timestamps):
        imu_lines.append(f"{t} {0.01 * i:.3f} -0.020 0.000 0.100 0.050 9.810\n")
    (root / "imu.log").write_text("".join(imu_lines))

    (root / "calib_cam_to_cam.txt").write_text(calibration)
    return root


@pytest.fixture
def make_dataset(tmp_path: Path) -> DatasetFactory:
    """Factory writing a sequence into a fresh directory; accepts write_dataset kwargs."""
    counter = iter(range(1000))

    def factory(**kwargs) -> Path:
        return write_dataset(tmp_path / f"seq_{next(counter)}", **kwargs)

    return factory


@pytest.fixture
def mock_dataset(make_dataset: DatasetFactory) -> Path:
    """Five frames at [100..500] with IMU samples at [150, 250, 260, 350, 450]."""
    return make_dataset()


@pytest.fixture
def config() -> ReplayConfig:
    """Default layout with a single skipped frame."""
    return ReplayConfig(initial_frame_skip=1)
