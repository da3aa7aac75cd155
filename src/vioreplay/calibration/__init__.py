"""Camera and IMU calibration."""

from .camera import (
    CameraIntrinsics,
    CameraParams,
    parse_body_pose_camera,
    parse_calibration_file,
    parse_camera_data,
    parse_rt,
)
from .imu import ImuParams, load_imu_params
from .pose import SE3, is_rotation

__all__ = [
    # Pose
    "SE3",
    "is_rotation",
    # Camera
    "CameraIntrinsics",
    "CameraParams",
    "parse_calibration_file",
    "parse_camera_data",
    "parse_rt",
    "parse_body_pose_camera",
    # IMU
    "ImuParams",
    "load_imu_params",
]
