"""Dataset layout and replay settings."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from .errors import ConfigurationError


@dataclass(frozen=True)
class ReplayConfig:
    """On-disk names and tunables for one replayed sequence.

    The defaults describe a flat layout:

        <root>/image_02/*.png
        <root>/image_02/timestamps.log
        <root>/image_03/*.png
        <root>/image_03/timestamps.log
        <root>/imu.log
        <root>/calib_cam_to_cam.txt

    Use `ReplayConfig.kitti_raw()` for the KITTI raw layout where images live
    in a `data/` subdirectory next to `timestamps.txt`.

    Attributes:
        left_camera_name: Directory of the left camera, also its calibration key
        right_camera_name: Directory of the right camera
        image_subdir: Subdirectory of the device dir holding images ("" = none)
        image_extension: Suffix of image files to enumerate
        timestamps_filename: Per-device timestamp log, relative to the device dir
        imu_log_filename: IMU log, relative to the dataset root
        calibration_filename: Camera calibration file, relative to the dataset root
        imu_to_velo_filename: Optional IMU -> velodyne extrinsics
        velo_to_cam_filename: Optional velodyne -> reference camera extrinsics
        imu_params_path: Optional YAML file overriding the IMU noise model
        initial_frame_skip: Leading frames skipped so the IMU has history (>= 1)
        final_frame: Optional inclusive cap on the last replayed frame
        max_stereo_offset_ns: Reject sequences whose left/right timestamps drift
            further apart than this
        grayscale: Decode images as single-channel
    """

    left_camera_name: str = "image_02"
    right_camera_name: str = "image_03"
    image_subdir: str = ""
    image_extension: str = ".png"
    timestamps_filename: str = "timestamps.log"
    imu_log_filename: str = "imu.log"
    calibration_filename: str = "calib_cam_to_cam.txt"
    imu_to_velo_filename: str = "calib_imu_to_velo.txt"
    velo_to_cam_filename: str = "calib_velo_to_cam.txt"
    imu_params_path: str | None = None
    initial_frame_skip: int = 10
    final_frame: int | None = None
    max_stereo_offset_ns: int | None = None
    grayscale: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Reject values the indexer cannot work with.

        Raises:
            ConfigurationError: If a setting is out of range
        """
        if not self.left_camera_name or not self.right_camera_name:
            raise ConfigurationError("Camera device names must not be empty")
        if self.left_camera_name == self.right_camera_name:
            raise ConfigurationError(
                f"Left and right camera names are identical: {self.left_camera_name}"
            )
        if self.initial_frame_skip < 1:
            raise ConfigurationError(
                f"initial_frame_skip must be >= 1, got {self.initial_frame_skip}"
            )
        if self.final_frame is not None and self.final_frame < 0:
            raise ConfigurationError(f"final_frame must be >= 0, got {self.final_frame}")
        if self.max_stereo_offset_ns is not None and self.max_stereo_offset_ns < 0:
            raise ConfigurationError(
                f"max_stereo_offset_ns must be >= 0, got {self.max_stereo_offset_ns}"
            )

    @classmethod
    def kitti_raw(cls, **overrides: object) -> ReplayConfig:
        """Preset for KITTI raw drives (image_0X/data/*.png, timestamps.txt)."""
        base = cls(image_subdir="data", timestamps_filename="timestamps.txt")
        return replace(base, **overrides) if overrides else base

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> ReplayConfig:
        """Load a config from a YAML mapping of field names to values.

        Args:
            yaml_path: Path to the YAML file

        Returns:
            ReplayConfig with the file's values over the defaults

        Raises:
            ConfigurationError: If the file is missing, not a mapping, or
                contains unknown keys or invalid values
        """
        path = Path(yaml_path)
        if not path.exists():
            raise ConfigurationError(f"Replay config not found: {path}")

        with open(path, "r") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Replay config must be a mapping, got {type(data).__name__}: {path}"
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown keys in {path}: {', '.join(unknown)}")

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid replay config {path}: {e}") from e

    def device_dir(self, root: Path, device: str) -> Path:
        """Directory holding one device's timestamp log."""
        return root / device

    def image_dir(self, root: Path, device: str) -> Path:
        """Directory holding one device's image files."""
        directory = self.device_dir(root, device)
        return directory / self.image_subdir if self.image_subdir else directory
