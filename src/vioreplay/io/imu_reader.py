"""IMU log reader.

One record per line: timestamp, angular velocity (wx, wy, wz) in rad/s and
linear acceleration (ax, ay, az) in m/s², separated by commas and/or
whitespace:

    # timestamp wx wy wz ax ay az
    1317384506400000000 0.01 -0.02 0.00 0.12 0.05 9.79
    2011-09-26 13:02:25.974389445, 0.01, -0.02, 0.00, 0.12, 0.05, 9.80

The timestamp is everything before the last six fields, so date-time
timestamps containing a space parse as one field.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from ..errors import ConfigurationError, ParseError
from .timestamps import parse_timestamp, timestamp_format


@dataclass(frozen=True, eq=False)
class ImuMeasurement:
    """Single IMU measurement at a given timestamp.

    Attributes:
        timestamp_ns: Measurement timestamp in nanoseconds
        gyroscope: Angular velocity (wx, wy, wz) in rad/s
        accelerometer: Linear acceleration (ax, ay, az) in m/s²
    """

    timestamp_ns: int
    gyroscope: np.ndarray  # (3,) rad/s
    accelerometer: np.ndarray  # (3,) m/s²

    def __post_init__(self) -> None:
        gyroscope = np.asarray(self.gyroscope, dtype=np.float64).flatten()
        accelerometer = np.asarray(self.accelerometer, dtype=np.float64).flatten()
        if gyroscope.shape != (3,) or accelerometer.shape != (3,):
            raise ValueError("Gyroscope and accelerometer must have 3 components")
        gyroscope.setflags(write=False)
        accelerometer.setflags(write=False)
        object.__setattr__(self, "gyroscope", gyroscope)
        object.__setattr__(self, "accelerometer", accelerometer)


class ImuStream(Sequence[ImuMeasurement]):
    """Immutable, time-ordered IMU measurements with interval lookup.

    Example usage:
        stream = parse_imu_log("dataset/imu.log")
        for m in stream.between(t_prev, t_curr):
            print(f"t={m.timestamp_ns}, gyro={m.gyroscope}, accel={m.accelerometer}")
    """

    def __init__(self, measurements: Sequence[ImuMeasurement] = ()) -> None:
        """Wrap measurements that are already sorted.

        Raises:
            ValueError: If timestamps are not strictly increasing
        """
        self._measurements = tuple(measurements)
        self._timestamps = [m.timestamp_ns for m in self._measurements]  # For binary search

        for prev, curr in zip(self._timestamps, self._timestamps[1:]):
            if curr <= prev:
                raise ValueError(
                    f"IMU timestamps must be strictly increasing: {prev} followed by {curr}"
                )

    def between(self, start_ns: int, end_ns: int) -> tuple[ImuMeasurement, ...]:
        """Get all measurements with start_ns < timestamp <= end_ns.

        Args:
            start_ns: Lower bound in nanoseconds (exclusive)
            end_ns: Upper bound in nanoseconds (inclusive)

        Returns:
            Measurements in the interval, possibly empty
        """
        if end_ns <= start_ns:
            return ()
        start_idx = bisect.bisect_right(self._timestamps, start_ns)
        end_idx = bisect.bisect_right(self._timestamps, end_ns)
        return self._measurements[start_idx:end_idx]

    def count_at_or_before(self, timestamp_ns: int) -> int:
        """Number of measurements with timestamp <= timestamp_ns."""
        return bisect.bisect_right(self._timestamps, timestamp_ns)

    @property
    def timestamps(self) -> tuple[int, ...]:
        return tuple(self._timestamps)

    @property
    def start_timestamp(self) -> int | None:
        """First IMU timestamp in nanoseconds."""
        return self._timestamps[0] if self._timestamps else None

    @property
    def end_timestamp(self) -> int | None:
        """Last IMU timestamp in nanoseconds."""
        return self._timestamps[-1] if self._timestamps else None

    def __getitem__(self, index):  # type: ignore[override]
        return self._measurements[index]

    def __iter__(self) -> Iterator[ImuMeasurement]:
        return iter(self._measurements)

    def __len__(self) -> int:
        return len(self._measurements)


def _split_record(line: str) -> list[str]:
    return line.replace(",", " ").split()


def _timestamp_field(line: str) -> str:
    return " ".join(_split_record(line)[:-6])


def _parse_record(line: str) -> ImuMeasurement:
    parts = _split_record(line)
    if len(parts) < 7:
        raise ValueError(f"expected timestamp and 6 values, got {len(parts)} fields")

    timestamp_ns = parse_timestamp(" ".join(parts[:-6]))
    values = np.array([float(p) for p in parts[-6:]], dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise ValueError("gyroscope and accelerometer values must be finite")
    return ImuMeasurement(
        timestamp_ns=timestamp_ns,
        gyroscope=np.array(values[:3]),
        accelerometer=np.array(values[3:]),
    )


def parse_imu_log(imu_log_path: str | Path) -> ImuStream:
    """Load every IMU measurement of the sequence.

    The log must already be sorted; it is never re-sorted.

    Args:
        imu_log_path: Path to the IMU log

    Returns:
        ImuStream with all measurements

    Raises:
        ConfigurationError: If the file does not exist
        ParseError: If a record is malformed or a timestamp does not increase,
            if timestamp forms are mixed, or the file is not UTF-8 text
    """
    path = Path(imu_log_path)
    if not path.exists():
        raise ConfigurationError(f"IMU log not found: {path}")

    measurements: list[ImuMeasurement] = []
    log_format: str | None = None
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                try:
                    measurement = _parse_record(line)
                except ValueError as e:
                    raise ParseError(
                        f"Invalid IMU record '{line}': {e}", path, line_number
                    ) from e

                # All records share the timestamp form of the first one
                form = timestamp_format(_timestamp_field(line))
                if log_format is None:
                    log_format = form
                elif form != log_format:
                    raise ParseError(
                        f"IMU timestamp is in {form} form but the log uses {log_format}",
                        path,
                        line_number,
                    )

                if measurements and measurement.timestamp_ns <= measurements[-1].timestamp_ns:
                    raise ParseError(
                        f"Non-increasing IMU timestamp {measurement.timestamp_ns} "
                        f"after {measurements[-1].timestamp_ns}",
                        path,
                        line_number,
                    )
                measurements.append(measurement)
    except UnicodeDecodeError as e:
        raise ParseError(f"Not a UTF-8 text file: {e}", path) from e

    return ImuStream(measurements)
