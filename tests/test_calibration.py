"""Tests for camera/IMU calibration parsing and SE3."""

from pathlib import Path

import numpy as np
import pytest
from conftest import CALIBRATION

from vioreplay.calibration import (
    SE3,
    ImuParams,
    is_rotation,
    load_imu_params,
    parse_body_pose_camera,
    parse_calibration_file,
    parse_camera_data,
    parse_rt,
)
from vioreplay.errors import ConfigurationError, ParseError

IDENTITY_ROW = "1 0 0 0 1 0 0 0 1"


def drop_entry(calibration: str, key: str) -> str:
    return "".join(
        line + "\n" for line in calibration.splitlines() if not line.startswith(f"{key}:")
    )


def replace_entry(calibration: str, key: str, values: str) -> str:
    return drop_entry(calibration, key) + f"{key}: {values}\n"


@pytest.fixture
def calib_dir(tmp_path: Path) -> Path:
    (tmp_path / "calib_cam_to_cam.txt").write_text(CALIBRATION)
    return tmp_path


class TestParseCalibrationFile:
    """Test suite for the key: values reader."""

    def test_reads_numeric_entries(self, calib_dir: Path):
        entries = parse_calibration_file(calib_dir / "calib_cam_to_cam.txt")

        assert "calib_time" not in entries
        assert entries["corner_dist"].tolist() == [pytest.approx(0.0995)]
        assert entries["K_02"].shape == (9,)

    def test_non_numeric_value(self, tmp_path: Path):
        path = tmp_path / "calib.txt"
        path.write_text("K_02: 1 2 three\n")

        with pytest.raises(ParseError, match="Non-numeric value for 'K_02'") as excinfo:
            parse_calibration_file(path)
        assert excinfo.value.line_number == 1

    def test_line_without_key(self, tmp_path: Path):
        path = tmp_path / "calib.txt"
        path.write_text("1 2 3\n")

        with pytest.raises(ParseError, match="Expected 'key: values'"):
            parse_calibration_file(path)

    def test_non_finite_value(self, tmp_path: Path):
        path = tmp_path / "calib.txt"
        path.write_text("S_02: 1392 512\nT_02: 0.06 inf 0\n")

        with pytest.raises(ParseError, match="Non-finite value for 'T_02'") as excinfo:
            parse_calibration_file(path)
        assert excinfo.value.line_number == 2

    def test_not_utf8(self, tmp_path: Path):
        path = tmp_path / "calib.txt"
        path.write_bytes(b"S_02: 1392 512\nK_02: \xff\xfe\n")

        with pytest.raises(ParseError, match="Not a UTF-8 text file"):
            parse_calibration_file(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="Calibration file not found"):
            parse_calibration_file(tmp_path / "calib.txt")


class TestParseCameraData:
    """Test suite for stereo calibration."""

    def test_camera_parameters(self, calib_dir: Path):
        cameras, _ = parse_camera_data(calib_dir, "image_02", "image_03", "calib_cam_to_cam.txt")

        assert set(cameras) == {"image_02", "image_03"}

        left = cameras["image_02"]
        assert left.camera_id == "image_02"
        assert left.intrinsics.fx == pytest.approx(959.791)
        assert left.intrinsics.cy == pytest.approx(224.1806)
        assert left.image_size == (1392, 512)
        assert left.distortion.shape == (5,)
        assert left.rectified_projection.shape == (3, 4)
        assert left.rectified_image_size == (1242, 375)

        right = cameras["image_03"]
        assert right.distortion.shape == (4,)
        assert right.rectified_projection is None
        np.testing.assert_allclose(right.K[0], [903.7596, 0.0, 695.7519])

    def test_stereo_baseline_pose(self, calib_dir: Path):
        """The baseline maps right camera points into the left camera frame."""
        _, left_pose_right = parse_camera_data(
            calib_dir, "image_02", "image_03", "calib_cam_to_cam.txt"
        )

        np.testing.assert_allclose(left_pose_right.rotation, np.eye(3))
        np.testing.assert_allclose(left_pose_right.translation, [0.53, 0.0, 0.0])
        assert left_pose_right.baseline == pytest.approx(0.53)
        # Right camera origin seen from the left camera
        np.testing.assert_allclose(left_pose_right.transform_point(np.zeros(3)), [0.53, 0, 0])

    def test_missing_stereo_translation(self, tmp_path: Path):
        (tmp_path / "calib_cam_to_cam.txt").write_text(drop_entry(CALIBRATION, "T_03"))

        with pytest.raises(ParseError, match="Missing calibration entry 'T_03'"):
            parse_camera_data(tmp_path, "image_02", "image_03", "calib_cam_to_cam.txt")

    def test_wrong_matrix_size(self, tmp_path: Path):
        (tmp_path / "calib_cam_to_cam.txt").write_text(
            replace_entry(CALIBRATION, "K_02", "1 0 0 0 1 0")
        )

        with pytest.raises(ParseError, match="'K_02' must have 9 values"):
            parse_camera_data(tmp_path, "image_02", "image_03", "calib_cam_to_cam.txt")

    def test_invalid_rotation(self, tmp_path: Path):
        (tmp_path / "calib_cam_to_cam.txt").write_text(
            replace_entry(CALIBRATION, "R_03", "2 0 0 0 1 0 0 0 1")
        )

        with pytest.raises(ParseError, match="'R_03' is not a rotation"):
            parse_camera_data(tmp_path, "image_02", "image_03", "calib_cam_to_cam.txt")

    def test_bad_distortion_size(self, tmp_path: Path):
        (tmp_path / "calib_cam_to_cam.txt").write_text(
            replace_entry(CALIBRATION, "D_02", "0.1 0.2")
        )

        with pytest.raises(ParseError, match="'D_02' must have 4 or 5 values"):
            parse_camera_data(tmp_path, "image_02", "image_03", "calib_cam_to_cam.txt")

    @pytest.mark.parametrize("key", ["K_02", "D_02", "S_03"])
    def test_nan_entry(self, tmp_path: Path, key: str):
        values = {"K_02": "nan 0 690 0 960 224 0 0 1", "D_02": "nan 0 0 0", "S_03": "nan 512"}
        (tmp_path / "calib_cam_to_cam.txt").write_text(
            replace_entry(CALIBRATION, key, values[key])
        )

        with pytest.raises(ParseError, match=f"Non-finite value for '{key}'"):
            parse_camera_data(tmp_path, "image_02", "image_03", "calib_cam_to_cam.txt")

    def test_unresolvable_device(self, calib_dir: Path):
        with pytest.raises(ConfigurationError, match="Cannot resolve calibration keys"):
            parse_camera_data(calib_dir, "left", "image_03", "calib_cam_to_cam.txt")

    def test_unknown_device(self, calib_dir: Path):
        with pytest.raises(ParseError, match="Missing calibration entry 'S_05'"):
            parse_camera_data(calib_dir, "image_02", "image_05", "calib_cam_to_cam.txt")


class TestExtrinsics:
    """Test suite for R/T extrinsics files."""

    def test_parse_rt(self, tmp_path: Path):
        path = tmp_path / "calib_imu_to_velo.txt"
        path.write_text(f"calib_time: 25-May-2012 16:47:16\nR: {IDENTITY_ROW}\nT: 1 2 3\n")

        R, T = parse_rt(path)

        np.testing.assert_allclose(R, np.eye(3))
        np.testing.assert_allclose(T, [1, 2, 3])

    def test_parse_rt_missing_translation(self, tmp_path: Path):
        path = tmp_path / "calib_imu_to_velo.txt"
        path.write_text(f"R: {IDENTITY_ROW}\n")

        with pytest.raises(ParseError, match="Missing calibration entry 'T'"):
            parse_rt(path)

    def test_body_pose_camera(self, calib_dir: Path):
        (calib_dir / "calib_imu_to_velo.txt").write_text(f"R: {IDENTITY_ROW}\nT: 1 0 0\n")
        (calib_dir / "calib_velo_to_cam.txt").write_text(
            f"R: {IDENTITY_ROW}\nT: 0 2 0\ndelta_f: 0 0\ndelta_c: 0 0\n"
        )
        cameras, _ = parse_camera_data(calib_dir, "image_02", "image_03", "calib_cam_to_cam.txt")

        cam_pose_body = parse_body_pose_camera(
            calib_dir, "calib_imu_to_velo.txt", "calib_velo_to_cam.txt", cameras["image_02"]
        )

        assert cam_pose_body is not None
        np.testing.assert_allclose(cam_pose_body.translation, [1.06, 2.0, 0.0])

    def test_body_pose_camera_absent(self, calib_dir: Path):
        cameras, _ = parse_camera_data(calib_dir, "image_02", "image_03", "calib_cam_to_cam.txt")

        assert (
            parse_body_pose_camera(
                calib_dir, "calib_imu_to_velo.txt", "calib_velo_to_cam.txt", cameras["image_02"]
            )
            is None
        )


class TestSE3:
    """Test suite for SE3."""

    def test_inverse_composes_to_identity(self):
        c, s = np.cos(0.3), np.sin(0.3)
        T = SE3.from_Rt(np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]]), [1.0, -2.0, 0.5])

        result = T @ T.inverse()

        np.testing.assert_allclose(result.rotation, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(result.translation, np.zeros(3), atol=1e-12)

    def test_matrix_round_trip(self):
        T = SE3.from_Rt(np.eye(3), [1, 2, 3])

        assert SE3.from_matrix(T.to_matrix()) == T

    def test_shape_validation(self):
        with pytest.raises(ValueError, match="Rotation must be 3x3"):
            SE3(rotation=np.eye(4), translation=np.zeros(3))
        with pytest.raises(ValueError, match="Transform must be 4x4"):
            SE3.from_matrix(np.eye(3))

    def test_is_rotation(self):
        assert is_rotation(np.eye(3))
        assert not is_rotation(np.diag([1.0, 1.0, -1.0]))
        assert not is_rotation(np.eye(2))


class TestImuParams:
    """Test suite for the IMU noise model."""

    def test_defaults(self):
        params = load_imu_params(None)

        assert params.rate_hz == 100.0
        assert params.nominal_period_ns == 10_000_000
        np.testing.assert_allclose(params.gravity, [0, 0, -9.81])

    def test_yaml_override(self, tmp_path: Path):
        path = tmp_path / "imu_params.yaml"
        path.write_text(
            "gyro_noise_density: 1.0e-3\n"
            "rate_hz: 200\n"
            "T_body_imu: [1, 0, 0, 0.1,  0, 1, 0, 0,  0, 0, 1, 0,  0, 0, 0, 1]\n"
        )

        params = load_imu_params(path)

        assert params.gyro_noise_density == pytest.approx(1.0e-3)
        assert params.rate_hz == 200.0
        assert params.accel_noise_density == ImuParams().accel_noise_density
        assert params.T_body_imu[0, 3] == pytest.approx(0.1)

    def test_unknown_key(self, tmp_path: Path):
        path = tmp_path / "imu_params.yaml"
        path.write_text("gyro_noise: 1.0\n")

        with pytest.raises(ParseError, match="Unknown IMU parameter 'gyro_noise'"):
            load_imu_params(path)

    def test_wrong_types(self, tmp_path: Path):
        path = tmp_path / "imu_params.yaml"

        path.write_text("rate_hz: fast\n")
        with pytest.raises(ParseError, match="'rate_hz' must be a number"):
            load_imu_params(path)

        path.write_text("rate_hz: -5\n")
        with pytest.raises(ParseError, match="must be positive"):
            load_imu_params(path)

        path.write_text("gravity: [0, 9.81]\n")
        with pytest.raises(ParseError, match="'gravity' must have 3 values"):
            load_imu_params(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="IMU parameter file not found"):
            load_imu_params(tmp_path / "imu_params.yaml")
