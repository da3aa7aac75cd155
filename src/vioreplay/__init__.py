"""vioreplay - synchronized stereo + IMU dataset replay."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .calibration import SE3, CameraIntrinsics, CameraParams, ImuParams
from .config import ReplayConfig
from .errors import (
    ConfigurationError,
    ConsistencyError,
    DecodeError,
    ParseError,
    ReplayError,
)
from .io import ImuMeasurement, ImuStream
from .packet import SynchronizedPacket
from .provider import KittiDataProvider
from .sequence import IndexBuildResult, SequenceIndex, build_sequence_index

__all__ = [
    "__version__",
    # Provider
    "KittiDataProvider",
    "SynchronizedPacket",
    "ReplayConfig",
    # Sequence index
    "SequenceIndex",
    "IndexBuildResult",
    "build_sequence_index",
    # Calibration
    "SE3",
    "CameraIntrinsics",
    "CameraParams",
    "ImuParams",
    # IMU
    "ImuMeasurement",
    "ImuStream",
    # Errors
    "ReplayError",
    "ConfigurationError",
    "ParseError",
    "ConsistencyError",
    "DecodeError",
]
