"""Stereo camera calibration parsing (KITTI `calib_*.txt` format).

Calibration files are lists of `key: values` lines, e.g.

    calib_time: 09-Jan-2012 13:57:47
    S_02: 1.392000e+03 5.120000e+02
    K_02: 9.597910e+02 0.000000e+00 6.960217e+02 ...
    D_02: -3.691481e-01 1.968681e-01 1.353473e-03 5.677587e-04 -6.770705e-02
    R_02: 9.999758e-01 -5.267463e-03 -4.552439e-03 ...
    T_02: 5.956621e-02 2.900141e-04 2.577209e-03

`R_xx`/`T_xx` map points from the reference camera (camera 00) into camera xx.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from ..errors import ConfigurationError, ParseError
from .pose import SE3, is_rotation

# Keys whose values are free text rather than numbers
_TEXT_KEYS = frozenset({"calib_time"})

_DEVICE_SUFFIX = re.compile(r"(\d{2})$")


@dataclass(frozen=True)
class CameraIntrinsics:
    """Camera intrinsic parameters (pinhole model)."""

    fx: float  # Focal length x (pixels)
    fy: float  # Focal length y (pixels)
    cx: float  # Principal point x (pixels)
    cy: float  # Principal point y (pixels)

    @classmethod
    def from_matrix(cls, K: np.ndarray) -> CameraIntrinsics:
        K = np.asarray(K, dtype=np.float64)
        return cls(fx=float(K[0, 0]), fy=float(K[1, 1]), cx=float(K[0, 2]), cy=float(K[1, 2]))

    def to_matrix(self) -> np.ndarray:
        """Return 3x3 camera intrinsic matrix K."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass(frozen=True, eq=False)
class CameraParams:
    """Calibration of one camera of the stereo rig.

    Attributes:
        camera_id: Device name, e.g. "image_02"
        intrinsics: Pinhole intrinsics from K_xx
        distortion: Radial-tangential coefficients from D_xx (k1, k2, p1, p2[, k3])
        image_size: (width, height) from S_xx
        cam_pose_ref: Transform from the reference camera into this camera
        rectification_rotation: R_rect_xx, if present
        rectified_projection: 3x4 P_rect_xx, if present
        rectified_image_size: S_rect_xx, if present
    """

    camera_id: str
    intrinsics: CameraIntrinsics
    distortion: np.ndarray
    image_size: tuple[int, int]
    cam_pose_ref: SE3
    rectification_rotation: np.ndarray | None = None
    rectified_projection: np.ndarray | None = None
    rectified_image_size: tuple[int, int] | None = field(default=None)

    @property
    def K(self) -> np.ndarray:
        return self.intrinsics.to_matrix()


def parse_calibration_file(calib_path: str | Path) -> dict[str, np.ndarray]:
    """Read every `key: v1 v2 ...` entry of a calibration file.

    Args:
        calib_path: Path to the calibration file

    Returns:
        Mapping from key to a flat float64 array of its values

    Raises:
        ConfigurationError: If the file does not exist
        ParseError: If a line has no key, a numeric entry cannot be parsed or is
            not finite, or the file is not UTF-8 text
    """
    path = Path(calib_path)
    if not path.exists():
        raise ConfigurationError(f"Calibration file not found: {path}")

    entries: dict[str, np.ndarray] = {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                key, sep, values = line.partition(":")
                key = key.strip()
                if not sep or not key:
                    raise ParseError(f"Expected 'key: values', got '{line}'", path, line_number)
                if key in _TEXT_KEYS:
                    continue

                try:
                    array = np.array([float(v) for v in values.split()], dtype=np.float64)
                except ValueError as e:
                    raise ParseError(
                        f"Non-numeric value for '{key}': '{values.strip()}'", path, line_number
                    ) from e
                if not np.all(np.isfinite(array)):
                    raise ParseError(
                        f"Non-finite value for '{key}': '{values.strip()}'", path, line_number
                    )
                entries[key] = array
    except UnicodeDecodeError as e:
        raise ParseError(f"Not a UTF-8 text file: {e}", path) from e

    return entries


def _require(
    entries: dict[str, np.ndarray], key: str, size: int, path: Path
) -> np.ndarray:
    if key not in entries:
        raise ParseError(f"Missing calibration entry '{key}'", path)
    values = entries[key]
    if values.size != size:
        raise ParseError(f"Entry '{key}' must have {size} values, got {values.size}", path)
    return values


def _rotation(values: np.ndarray, key: str, path: Path) -> np.ndarray:
    R = values.reshape(3, 3)
    if not is_rotation(R):
        raise ParseError(f"Entry '{key}' is not a rotation matrix", path)
    return R


def parse_rt(calib_path: str | Path) -> tuple[np.ndarray, np.ndarray]:
    """Read the `R:` (3x3) and `T:` (3,) entries of an extrinsics file.

    Raises:
        ConfigurationError: If the file does not exist
        ParseError: If an entry is missing or has the wrong size
    """
    path = Path(calib_path)
    entries = parse_calibration_file(path)
    R = _rotation(_require(entries, "R", 9, path), "R", path)
    T = _require(entries, "T", 3, path)
    return R, T.copy()


def camera_suffix(device_name: str) -> str:
    """Map a device directory name to its calibration suffix ("image_02" -> "02").

    Raises:
        ConfigurationError: If the name does not end in two digits
    """
    match = _DEVICE_SUFFIX.search(device_name)
    if match is None:
        raise ConfigurationError(
            f"Cannot resolve calibration keys for device '{device_name}': "
            f"expected a name ending in two digits, e.g. image_02"
        )
    return match.group(1)


def _camera_params(entries: dict[str, np.ndarray], device: str, path: Path) -> CameraParams:
    sid = camera_suffix(device)

    size = _require(entries, f"S_{sid}", 2, path)
    K = _require(entries, f"K_{sid}", 9, path).reshape(3, 3)
    if f"D_{sid}" not in entries:
        raise ParseError(f"Missing calibration entry 'D_{sid}'", path)
    distortion = entries[f"D_{sid}"]
    if distortion.size not in (4, 5):
        raise ParseError(
            f"Entry 'D_{sid}' must have 4 or 5 values, got {distortion.size}", path
        )
    R = _rotation(_require(entries, f"R_{sid}", 9, path), f"R_{sid}", path)
    T = _require(entries, f"T_{sid}", 3, path)

    rect_rotation = None
    if f"R_rect_{sid}" in entries:
        rect_rotation = _require(entries, f"R_rect_{sid}", 9, path).reshape(3, 3)
    rect_projection = None
    if f"P_rect_{sid}" in entries:
        rect_projection = _require(entries, f"P_rect_{sid}", 12, path).reshape(3, 4)
    rect_size = None
    if f"S_rect_{sid}" in entries:
        w, h = _require(entries, f"S_rect_{sid}", 2, path)
        rect_size = (int(w), int(h))

    return CameraParams(
        camera_id=device,
        intrinsics=CameraIntrinsics.from_matrix(K),
        distortion=distortion.copy(),
        image_size=(int(size[0]), int(size[1])),
        cam_pose_ref=SE3.from_Rt(R, T),
        rectification_rotation=rect_rotation,
        rectified_projection=rect_projection,
        rectified_image_size=rect_size,
    )


def parse_camera_data(
    dataset_path: str | Path,
    left_camera_name: str,
    right_camera_name: str,
    calibration_filename: str,
) -> tuple[dict[str, CameraParams], SE3]:
    """Parse both cameras and the stereo baseline from the calibration file.

    Args:
        dataset_path: Dataset root
        left_camera_name: Left device name, e.g. "image_02"
        right_camera_name: Right device name, e.g. "image_03"
        calibration_filename: Calibration file relative to the root

    Returns:
        Tuple of (camera_parameters keyed by device name, left_pose_right)
        where left_pose_right maps points from the right camera frame into
        the left camera frame

    Raises:
        ConfigurationError: If the file is missing or a device name is unresolvable
        ParseError: If an entry is missing, malformed or has the wrong size
    """
    path = Path(dataset_path) / calibration_filename
    entries = parse_calibration_file(path)

    left = _camera_params(entries, left_camera_name, path)
    right = _camera_params(entries, right_camera_name, path)

    # left_pose_right = left_pose_ref @ ref_pose_right
    left_pose_right = left.cam_pose_ref @ right.cam_pose_ref.inverse()

    return {left_camera_name: left, right_camera_name: right}, left_pose_right


def parse_body_pose_camera(
    dataset_path: str | Path,
    imu_to_velo_filename: str,
    velo_to_cam_filename: str,
    left_params: CameraParams,
) -> SE3 | None:
    """Compose the IMU body -> left camera transform, if both extrinsics exist.

    cam_pose_body = cam_pose_ref @ ref_pose_velo @ velo_pose_imu

    Returns:
        The transform, or None when either extrinsics file is absent

    Raises:
        ParseError: If a present file is malformed
    """
    root = Path(dataset_path)
    imu_to_velo = root / imu_to_velo_filename
    velo_to_cam = root / velo_to_cam_filename
    if not imu_to_velo.exists() or not velo_to_cam.exists():
        return None

    velo_pose_imu = SE3.from_Rt(*parse_rt(imu_to_velo))
    ref_pose_velo = SE3.from_Rt(*parse_rt(velo_to_cam))
    return left_params.cam_pose_ref @ ref_pose_velo @ velo_pose_imu
