"""SE(3) rigid transform used for the camera-IMU extrinsic calibration."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class SE3:
    """Rigid body transformation (rotation + translation).

    For the extrinsic calibration T_cam_imu this maps points from the IMU
    frame into the camera frame:

        p_cam = R_cam_imu @ p_imu + p_cam_imu

    Attributes:
        rotation: 3x3 rotation matrix
        translation: 3D translation vector
    """

    rotation: np.ndarray  # 3x3 rotation matrix
    translation: np.ndarray  # (3,) translation vector

    def __post_init__(self) -> None:
        """Validate and normalize inputs."""
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        self.translation = np.asarray(self.translation, dtype=np.float64).flatten()

        if self.rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {self.rotation.shape}")
        if self.translation.shape != (3,):
            raise ValueError(
                f"Translation must be (3,), got {self.translation.shape}"
            )

    @classmethod
    def identity(cls) -> SE3:
        """Create identity transformation."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> SE3:
        """Create SE3 from a 4x4 homogeneous transformation matrix.

        The rotation is the top-left 3x3 block and the translation is the
        first three rows of the last column.

        Args:
            T: 4x4 transformation matrix of the form:
               [[R  t]
                [0  1]]

        Returns:
            SE3 transformation
        """
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {T.shape}")
        return cls(rotation=T[:3, :3], translation=T[:3, 3])

    def to_quaternion(self) -> np.ndarray:
        """Convert the rotation to a Hamilton unit quaternion.

        Uses Shepperd's method, branching on the largest diagonal term for
        numerical stability. The sign is fixed so that w >= 0.

        Returns:
            (4,) array [w, x, y, z]
        """
        R = self.rotation
        trace = R[0, 0] + R[1, 1] + R[2, 2]

        if trace > 0.0:
            s = 2.0 * np.sqrt(trace + 1.0)
            q = np.array(
                [
                    0.25 * s,
                    (R[2, 1] - R[1, 2]) / s,
                    (R[0, 2] - R[2, 0]) / s,
                    (R[1, 0] - R[0, 1]) / s,
                ]
            )
        elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
            s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
            q = np.array(
                [
                    (R[2, 1] - R[1, 2]) / s,
                    0.25 * s,
                    (R[0, 1] + R[1, 0]) / s,
                    (R[0, 2] + R[2, 0]) / s,
                ]
            )
        elif R[1, 1] > R[2, 2]:
            s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
            q = np.array(
                [
                    (R[0, 2] - R[2, 0]) / s,
                    (R[0, 1] + R[1, 0]) / s,
                    0.25 * s,
                    (R[1, 2] + R[2, 1]) / s,
                ]
            )
        else:
            s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
            q = np.array(
                [
                    (R[1, 0] - R[0, 1]) / s,
                    (R[0, 2] + R[2, 0]) / s,
                    (R[1, 2] + R[2, 1]) / s,
                    0.25 * s,
                ]
            )

        q = q / np.linalg.norm(q)
        if q[0] < 0.0:
            q = -q
        return q

    def to_matrix(self) -> np.ndarray:
        """Convert to 4x4 homogeneous transformation matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def inverse(self) -> SE3:
        """Compute the inverse transformation [R^T, -R^T @ t]."""
        R_inv = self.rotation.T
        t_inv = -R_inv @ self.translation
        return SE3(rotation=R_inv, translation=t_inv)

    def is_orthonormal(self, atol: float = 1e-6) -> bool:
        """Return True if the rotation is a proper rotation (R^T R = I, det = +1)."""
        R = self.rotation
        if not np.all(np.isfinite(R)):
            return False
        return bool(
            np.allclose(R.T @ R, np.eye(3), atol=atol)
            and np.isclose(np.linalg.det(R), 1.0, atol=atol)
        )

    def __repr__(self) -> str:
        """Return string representation."""
        t = self.translation
        return f"SE3(translation=[{t[0]:.3f}, {t[1]:.3f}, {t[2]:.3f}])"
