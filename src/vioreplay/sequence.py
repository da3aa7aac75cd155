"""Sequence indexing: parse every file of a recording and reconcile them.

The index is committed only after all parsers succeed and the image lists,
timestamp logs and IMU stream agree with each other. Nothing downstream ever
sees a partially parsed sequence.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import cast

from .calibration import (
    SE3,
    CameraParams,
    ImuParams,
    load_imu_params,
    parse_body_pose_camera,
    parse_camera_data,
)
from .config import ReplayConfig
from .errors import ConfigurationError, ConsistencyError, ReplayError
from .io.imu_reader import ImuStream, parse_imu_log
from .io.timestamps import NS_PER_SECOND, parse_timestamps

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SequenceIndex:
    """Immutable, cross-validated view of one recorded sequence.

    Attributes:
        initial_frame: First replayed frame (inclusive, >= 1)
        final_frame: Last replayed frame (inclusive)
        left_camera_name: Left device name, key into camera_parameters
        right_camera_name: Right device name, key into camera_parameters
        camera_parameters: Calibration per device name
        stereo_baseline_pose: Transform from the right camera frame into the left
        left_image_names: Left image paths, one per frame
        right_image_names: Right image paths, one per frame
        frame_timestamps: Capture time per frame in nanoseconds (left camera clock)
        imu_parameters: IMU noise model
        imu_stream: All IMU measurements of the sequence
        right_frame_timestamps: Right camera log, kept for inspection
        left_camera_pose_body: Transform from the IMU body frame into the left
            camera, when the IMU extrinsics are available
    """

    initial_frame: int
    final_frame: int
    left_camera_name: str
    right_camera_name: str
    camera_parameters: Mapping[str, CameraParams]
    stereo_baseline_pose: SE3
    left_image_names: Sequence[Path]
    right_image_names: Sequence[Path]
    frame_timestamps: Sequence[int]
    imu_parameters: ImuParams
    imu_stream: ImuStream
    right_frame_timestamps: Sequence[int] = ()
    left_camera_pose_body: SE3 | None = field(default=None)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "camera_parameters", MappingProxyType(dict(self.camera_parameters))
        )
        object.__setattr__(self, "left_image_names", tuple(self.left_image_names))
        object.__setattr__(self, "right_image_names", tuple(self.right_image_names))
        object.__setattr__(self, "frame_timestamps", tuple(self.frame_timestamps))
        object.__setattr__(
            self, "right_frame_timestamps", tuple(self.right_frame_timestamps)
        )

    def validate(self) -> None:
        """Check every cross-file invariant of the index.

        Raises:
            ConsistencyError: Describing the first violated invariant
        """
        n = len(self.left_image_names)
        if n == 0:
            raise ConsistencyError(f"No images for {self.left_camera_name}")
        if not self.right_image_names:
            raise ConsistencyError(f"No images for {self.right_camera_name}")
        if len(self.right_image_names) != n:
            raise ConsistencyError(
                f"{self.left_camera_name} has {n} images but "
                f"{self.right_camera_name} has {len(self.right_image_names)}"
            )
        if len(self.frame_timestamps) != n:
            raise ConsistencyError(
                f"{n} stereo frames but {len(self.frame_timestamps)} frame timestamps"
            )
        if self.right_frame_timestamps and len(self.right_frame_timestamps) != n:
            raise ConsistencyError(
                f"{n} stereo frames but {len(self.right_frame_timestamps)} "
                f"{self.right_camera_name} timestamps"
            )
        _check_non_decreasing(self.frame_timestamps, self.left_camera_name)

        for name in (self.left_camera_name, self.right_camera_name):
            if name not in self.camera_parameters:
                raise ConsistencyError(f"No calibration for {name}")

        if not 1 <= self.initial_frame <= self.final_frame < n:
            raise ConsistencyError(
                f"Invalid frame range [{self.initial_frame}, {self.final_frame}] "
                f"for {n} frames"
            )
        if self.imu_stream.count_at_or_before(self.frame_timestamps[self.initial_frame]) == 0:
            raise ConsistencyError(
                f"No IMU measurement at or before frame {self.initial_frame} "
                f"(t={self.frame_timestamps[self.initial_frame]})"
            )

    def is_valid(self) -> bool:
        """Return True if validate() passes."""
        try:
            self.validate()
        except ConsistencyError:
            return False
        return True

    @property
    def number_of_images(self) -> int:
        return len(self.left_image_names)

    @property
    def number_of_replay_frames(self) -> int:
        return self.final_frame - self.initial_frame + 1

    def summary(self) -> str:
        """Human-readable description of the sequence."""
        t0 = self.frame_timestamps[0]
        t1 = self.frame_timestamps[-1]
        lines = [
            f"Sequence: {self.number_of_images} stereo frames "
            f"({self.left_camera_name} / {self.right_camera_name})",
            f"  Replay range: frames {self.initial_frame}..{self.final_frame} "
            f"({self.number_of_replay_frames} packets)",
            f"  Time span: {t0} .. {t1} ns ({(t1 - t0) / NS_PER_SECOND:.2f} s)",
            f"  IMU: {len(self.imu_stream)} measurements, "
            f"{self.imu_stream.start_timestamp} .. {self.imu_stream.end_timestamp} ns",
            f"  Stereo baseline: {self.stereo_baseline_pose.baseline:.4f} m",
        ]
        for name, params in self.camera_parameters.items():
            k = params.intrinsics
            w, h = params.image_size
            lines.append(
                f"  {name}: fx={k.fx:.2f} fy={k.fy:.2f} cx={k.cx:.2f} cy={k.cy:.2f} "
                f"size={w}x{h}"
            )
        if self.left_camera_pose_body is None:
            lines.append("  IMU extrinsics: unavailable")
        return "\n".join(lines)


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of indexing: either an index or the error that prevented it."""

    index: SequenceIndex | None = None
    error: ReplayError | None = None

    def __post_init__(self) -> None:
        if (self.index is None) == (self.error is None):
            raise ValueError("IndexBuildResult needs exactly one of index or error")

    @property
    def ok(self) -> bool:
        return self.index is not None

    def unwrap(self) -> SequenceIndex:
        """Return the index, or raise the stored error."""
        if self.index is None:
            raise cast(ReplayError, self.error)
        return self.index


def list_images(image_dir: Path, extension: str) -> list[Path]:
    """Enumerate image files of one device in temporal order.

    Files are ordered by integer stem when every stem is an integer
    (0000000009.png before 0000000010.png regardless of padding),
    lexicographically otherwise.

    Raises:
        ConfigurationError: If the directory does not exist
    """
    if not image_dir.is_dir():
        raise ConfigurationError(f"Image directory not found: {image_dir}")

    suffix = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
    images = [p for p in image_dir.iterdir() if p.is_file() and p.suffix.lower() == suffix]

    if images and all(p.stem.isascii() and p.stem.isdigit() for p in images):
        images.sort(key=lambda p: (int(p.stem), p.name))
    else:
        images.sort(key=lambda p: p.name)
    return images


def _check_non_decreasing(timestamps: Sequence[int], device: str) -> None:
    for i, (prev, curr) in enumerate(zip(timestamps, timestamps[1:]), start=1):
        if curr < prev:
            raise ConsistencyError(
                f"{device} timestamps decrease at frame {i}: {prev} -> {curr}"
            )


def _reconcile(
    config: ReplayConfig,
    left_images: list[Path],
    right_images: list[Path],
    left_timestamps: list[int],
    right_timestamps: list[int],
) -> None:
    left, right = config.left_camera_name, config.right_camera_name

    if not left_images:
        raise ConsistencyError(f"No {config.image_extension} images found for {left}")
    if not right_images:
        raise ConsistencyError(f"No {config.image_extension} images found for {right}")
    if len(left_images) != len(right_images):
        raise ConsistencyError(
            f"{left} has {len(left_images)} images but {right} has {len(right_images)}"
        )
    for device, images, timestamps in (
        (left, left_images, left_timestamps),
        (right, right_images, right_timestamps),
    ):
        if len(timestamps) != len(images):
            raise ConsistencyError(
                f"{device} has {len(images)} images but {len(timestamps)} timestamps"
            )
        _check_non_decreasing(timestamps, device)

    max_offset = max(abs(l - r) for l, r in zip(left_timestamps, right_timestamps))
    logger.debug("Max stereo timestamp offset: %d ns", max_offset)
    if config.max_stereo_offset_ns is not None and max_offset > config.max_stereo_offset_ns:
        raise ConsistencyError(
            f"Stereo timestamps differ by up to {max_offset} ns "
            f"(limit {config.max_stereo_offset_ns} ns)"
        )


def _frame_range(
    config: ReplayConfig, timestamps: list[int], imu_stream: ImuStream
) -> tuple[int, int]:
    """Choose [initial_frame, final_frame] so every replayed frame has IMU history."""
    n = len(timestamps)
    final = n - 1 if config.final_frame is None else min(config.final_frame, n - 1)
    if config.initial_frame_skip > final:
        raise ConsistencyError(
            f"No frames to replay: skipping {config.initial_frame_skip} frames "
            f"leaves nothing before final frame {final}"
        )

    imu_start = imu_stream.start_timestamp
    if imu_start is None:
        raise ConsistencyError("IMU log contains no measurements")

    # First frame captured at or after the first IMU sample
    first_covered = bisect.bisect_left(timestamps, imu_start)
    initial = max(config.initial_frame_skip, first_covered)
    if initial > final:
        raise ConsistencyError(
            f"IMU starts at {imu_start} ns, after the last replayable frame "
            f"(t={timestamps[final]})"
        )
    if initial > config.initial_frame_skip:
        logger.warning(
            "Skipping %d frames instead of %d: IMU starts at %d ns",
            initial,
            config.initial_frame_skip,
            imu_start,
        )
    return initial, final


def _imu_params_path(root: Path, config: ReplayConfig) -> Path | None:
    if config.imu_params_path is None:
        return None
    path = Path(config.imu_params_path)
    return path if path.is_absolute() else root / path


def _build(root: Path, config: ReplayConfig) -> SequenceIndex:
    if not root.exists():
        raise ConfigurationError(f"Dataset path does not exist: {root}")

    for device in (config.left_camera_name, config.right_camera_name):
        device_dir = config.device_dir(root, device)
        if not device_dir.is_dir():
            raise ConfigurationError(
                f"{device} directory not found: {device_dir}\n"
                f"Expected structure: {root}/{device}/"
            )

    camera_parameters, baseline = parse_camera_data(
        root,
        config.left_camera_name,
        config.right_camera_name,
        config.calibration_filename,
    )
    body_pose = parse_body_pose_camera(
        root,
        config.imu_to_velo_filename,
        config.velo_to_cam_filename,
        camera_parameters[config.left_camera_name],
    )

    left_timestamps = parse_timestamps(
        config.device_dir(root, config.left_camera_name) / config.timestamps_filename
    )
    right_timestamps = parse_timestamps(
        config.device_dir(root, config.right_camera_name) / config.timestamps_filename
    )
    imu_stream = parse_imu_log(root / config.imu_log_filename)
    imu_params = load_imu_params(_imu_params_path(root, config))

    left_images = list_images(
        config.image_dir(root, config.left_camera_name), config.image_extension
    )
    right_images = list_images(
        config.image_dir(root, config.right_camera_name), config.image_extension
    )

    _reconcile(config, left_images, right_images, left_timestamps, right_timestamps)
    initial, final = _frame_range(config, left_timestamps, imu_stream)

    index = SequenceIndex(
        initial_frame=initial,
        final_frame=final,
        left_camera_name=config.left_camera_name,
        right_camera_name=config.right_camera_name,
        camera_parameters=camera_parameters,
        stereo_baseline_pose=baseline,
        left_image_names=left_images,
        right_image_names=right_images,
        frame_timestamps=left_timestamps,
        imu_parameters=imu_params,
        imu_stream=imu_stream,
        right_frame_timestamps=right_timestamps,
        left_camera_pose_body=body_pose,
    )
    index.validate()
    return index


def build_sequence_index(
    dataset_path: str | Path, config: ReplayConfig | None = None
) -> IndexBuildResult:
    """Parse and reconcile every file of a sequence.

    Args:
        dataset_path: Dataset root
        config: Layout and tunables, defaults to ReplayConfig()

    Returns:
        IndexBuildResult holding either the index or the configuration,
        parse or consistency error that prevented it
    """
    root = Path(dataset_path)
    try:
        index = _build(root, config or ReplayConfig())
    except ReplayError as e:
        logger.debug("Indexing %s failed: %s", root, e)
        return IndexBuildResult(error=e)

    logger.info(
        "Indexed %s: %d frames, replaying %d..%d, %d IMU measurements",
        root,
        index.number_of_images,
        index.initial_frame,
        index.final_frame,
        len(index.imu_stream),
    )
    return IndexBuildResult(index=index)
