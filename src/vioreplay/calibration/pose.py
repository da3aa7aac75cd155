"""Rigid transforms between sensor frames."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

_ROTATION_TOLERANCE = 1e-3


def is_rotation(R: np.ndarray, atol: float = _ROTATION_TOLERANCE) -> bool:
    """Check that R is a 3x3 orthonormal matrix with det = +1.

    Calibration files print matrices with ~7 significant digits, so the
    tolerance is loose.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        return False
    return bool(
        np.allclose(R @ R.T, np.eye(3), atol=atol)
        and abs(np.linalg.det(R) - 1.0) < atol
    )


@dataclass(frozen=True)
class SE3:
    """Rigid transform T_a_b mapping points from frame b into frame a.

        p_a = R @ p_b + t

    Attributes:
        rotation: 3x3 rotation matrix
        translation: (3,) translation vector
    """

    rotation: np.ndarray
    translation: np.ndarray

    def __post_init__(self) -> None:
        rotation = np.asarray(self.rotation, dtype=np.float64)
        translation = np.asarray(self.translation, dtype=np.float64).flatten()

        if rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {rotation.shape}")
        if translation.shape != (3,):
            raise ValueError(f"Translation must be (3,), got {translation.shape}")

        rotation.setflags(write=False)
        translation.setflags(write=False)
        object.__setattr__(self, "rotation", rotation)
        object.__setattr__(self, "translation", translation)

    @classmethod
    def identity(cls) -> SE3:
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_Rt(cls, R: np.ndarray, t: np.ndarray) -> SE3:
        """Build from a rotation matrix and a translation of any shape that flattens to 3."""
        return cls(rotation=R, translation=t)

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Build from a 4x4 homogeneous matrix [[R, t], [0, 1]]."""
        T = np.asarray(T)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")
        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    def to_matrix(self) -> np.ndarray:
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def inverse(self) -> SE3:
        """Return T_b_a for T_a_b, i.e. [R^T, -R^T @ t]."""
        R_inv = self.rotation.T
        return SE3(rotation=R_inv, translation=-R_inv @ self.translation)

    def compose(self, other: SE3) -> SE3:
        """Chain transforms: T_a_b.compose(T_b_c) gives T_a_c."""
        return SE3(
            rotation=self.rotation @ other.rotation,
            translation=self.rotation @ other.translation + self.translation,
        )

    def transform_point(self, point: np.ndarray) -> np.ndarray:
        point = np.asarray(point, dtype=np.float64).flatten()
        return self.rotation @ point + self.translation

    @property
    def baseline(self) -> float:
        """Length of the translation, e.g. the stereo baseline in meters."""
        return float(np.linalg.norm(self.translation))

    def __matmul__(self, other: SE3) -> SE3:
        return self.compose(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SE3):
            return NotImplemented
        return bool(
            np.array_equal(self.rotation, other.rotation)
            and np.array_equal(self.translation, other.translation)
        )

    def __repr__(self) -> str:
        t = self.translation
        return f"SE3(translation=[{t[0]:.4f}, {t[1]:.4f}, {t[2]:.4f}])"
