"""IMU noise model.

The KITTI OXTS unit ships no noise calibration, so the defaults below are a
fixed configuration. A YAML file can override any subset of them:

    gyro_noise_density: 1.7e-4
    accel_noise_density: 2.0e-3
    rate_hz: 100.0
    T_body_imu: [1, 0, 0, 0,  0, 1, 0, 0,  0, 0, 1, 0,  0, 0, 0, 1]
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import numpy as np
import yaml

from ..errors import ConfigurationError, ParseError


def _default_gravity() -> np.ndarray:
    return np.array([0.0, 0.0, -9.81])


@dataclass(frozen=True, eq=False)
class ImuParams:
    """IMU noise, bias and rate model handed to the estimator.

    Attributes:
        gyro_noise_density: Gyroscope white noise (rad/s/√Hz)
        gyro_random_walk: Gyroscope bias random walk (rad/s²/√Hz)
        accel_noise_density: Accelerometer white noise (m/s²/√Hz)
        accel_random_walk: Accelerometer bias random walk (m/s³/√Hz)
        rate_hz: Nominal sampling rate in Hz
        integration_sigma: Preintegration discretization noise
        gravity: Gravity vector in the navigation frame (m/s²)
        T_body_imu: 4x4 transform from IMU frame to body frame
    """

    gyro_noise_density: float = 1.6968e-04
    gyro_random_walk: float = 1.9393e-05
    accel_noise_density: float = 2.0000e-03
    accel_random_walk: float = 3.0000e-03
    rate_hz: float = 100.0
    integration_sigma: float = 1.0e-08
    gravity: np.ndarray = field(default_factory=_default_gravity)
    T_body_imu: np.ndarray = field(default_factory=lambda: np.eye(4))

    @property
    def nominal_period_ns(self) -> int:
        return int(round(1e9 / self.rate_hz))


_FLOAT_KEYS = frozenset(
    f.name for f in fields(ImuParams) if f.name not in ("gravity", "T_body_imu")
)


def load_imu_params(yaml_path: str | Path | None = None) -> ImuParams:
    """Return the IMU model, optionally overridden from a YAML file.

    Args:
        yaml_path: Override file, or None for the fixed defaults

    Returns:
        ImuParams

    Raises:
        ConfigurationError: If yaml_path is given but does not exist
        ParseError: If the file is not a mapping, has unknown keys, or a value
            has the wrong type or size
    """
    params = ImuParams()
    if yaml_path is None:
        return params

    path = Path(yaml_path)
    if not path.exists():
        raise ConfigurationError(f"IMU parameter file not found: {path}")

    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ParseError(f"Invalid YAML: {e}", path) from e

    if data is None:
        return params
    if not isinstance(data, dict):
        raise ParseError("IMU parameters must be a mapping", path)

    overrides: dict[str, object] = {}
    for key, value in data.items():
        if key in _FLOAT_KEYS:
            try:
                overrides[key] = float(value)
            except (TypeError, ValueError) as e:
                raise ParseError(f"'{key}' must be a number, got {value!r}", path) from e
            if overrides[key] <= 0.0:
                raise ParseError(f"'{key}' must be positive, got {value!r}", path)
        elif key == "gravity":
            overrides[key] = _array(value, 3, key, path)
        elif key == "T_body_imu":
            overrides[key] = _array(value, 16, key, path).reshape(4, 4)
        else:
            raise ParseError(f"Unknown IMU parameter '{key}'", path)

    return replace(params, **overrides)


def _array(value: object, size: int, key: str, path: Path) -> np.ndarray:
    try:
        arr = np.asarray(value, dtype=np.float64).flatten()
    except (TypeError, ValueError) as e:
        raise ParseError(f"'{key}' must be a list of numbers", path) from e
    if arr.size != size:
        raise ParseError(f"'{key}' must have {size} values, got {arr.size}", path)
    return arr
