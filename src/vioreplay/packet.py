"""Synchronized stereo + IMU packet delivered to the consumer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .io.imu_reader import ImuMeasurement


@dataclass(frozen=True, eq=False)
class SynchronizedPacket:
    """One replay step: a stereo pair plus the IMU samples since the previous frame.

    The IMU window holds every sample with
    previous_timestamp_ns < timestamp <= timestamp_ns.

    Attributes:
        frame_index: Index of the frame in the sequence
        timestamp_ns: Capture time of the stereo pair
        previous_timestamp_ns: Capture time of the previous frame (window lower bound)
        left_image: Decoded left image
        right_image: Decoded right image
        left_image_path: File the left image was loaded from
        right_image_path: File the right image was loaded from
        imu_window: IMU measurements in the inter-frame interval, oldest first
    """

    frame_index: int
    timestamp_ns: int
    previous_timestamp_ns: int
    left_image: np.ndarray
    right_image: np.ndarray
    left_image_path: Path
    right_image_path: Path
    imu_window: tuple[ImuMeasurement, ...]

    @property
    def imu_timestamps(self) -> np.ndarray:
        """(N,) int64 timestamps of the IMU window."""
        return np.array([m.timestamp_ns for m in self.imu_window], dtype=np.int64)

    @property
    def gyroscope(self) -> np.ndarray:
        """(N, 3) angular velocities of the IMU window."""
        if not self.imu_window:
            return np.empty((0, 3), dtype=np.float64)
        return np.stack([m.gyroscope for m in self.imu_window])

    @property
    def accelerometer(self) -> np.ndarray:
        """(N, 3) linear accelerations of the IMU window."""
        if not self.imu_window:
            return np.empty((0, 3), dtype=np.float64)
        return np.stack([m.accelerometer for m in self.imu_window])

    def __repr__(self) -> str:
        return (
            f"SynchronizedPacket(frame={self.frame_index}, t={self.timestamp_ns}, "
            f"imu={len(self.imu_window)})"
        )
