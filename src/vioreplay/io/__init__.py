"""Readers for timestamp logs, IMU logs and images."""

from .images import load_image
from .imu_reader import ImuMeasurement, ImuStream, parse_imu_log
from .timestamps import NS_PER_SECOND, parse_timestamp, parse_timestamps, timestamp_format

__all__ = [
    "ImuMeasurement",
    "ImuStream",
    "parse_imu_log",
    "parse_timestamp",
    "parse_timestamps",
    "timestamp_format",
    "NS_PER_SECOND",
    "load_image",
]
