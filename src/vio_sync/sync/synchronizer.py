"""Assign buffered inertial samples to the interval ending at each image."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from .imu_buffer import InertialBuffer, InertialSample

if TYPE_CHECKING:
    from ..interfaces import FeatureTracker


def rotate_to_camera(R_cam_imu: np.ndarray, omega_body: np.ndarray) -> np.ndarray:
    """Rotate a body-frame angular velocity into the camera frame.

    gyro_camera = R_cam_imu^T @ omega_body
    """
    return R_cam_imu.T @ np.asarray(omega_body, dtype=np.float64)


class TemporalSynchronizer:
    """Drains the inertial buffer at image timestamps and feeds the tracker.

    Every sample with timestamp <= the image timestamp is rotated into the
    camera frame and forwarded, one call per sample and in arrival order,
    before the image itself reaches the tracker. The tracker integrates the
    readings incrementally, so order matters.
    """

    def __init__(
        self,
        buffer: InertialBuffer,
        R_cam_imu: np.ndarray,
        tracker: FeatureTracker,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            buffer: Shared inertial buffer (also appended to by the IMU path)
            R_cam_imu: 3x3 extrinsic rotation
            tracker: Receives one add_rotation_reading() call per sample
        """
        self._buffer = buffer
        self._R_cam_imu = np.asarray(R_cam_imu, dtype=np.float64)
        self._tracker = tracker

        if self._R_cam_imu.shape != (3, 3):
            raise ValueError(f"R_cam_imu must be 3x3, got {self._R_cam_imu.shape}")

    def synchronize(self, image_timestamp: float) -> list[InertialSample]:
        """Forward every sample up to image_timestamp to the tracker.

        Args:
            image_timestamp: Image timestamp in seconds, used as the cutoff

        Returns:
            The drained samples, in the order they were forwarded
        """
        readings = self._buffer.drain_up_to(image_timestamp)

        for reading in readings:
            gyro = rotate_to_camera(self._R_cam_imu, reading.angular_velocity)
            self._tracker.add_rotation_reading(gyro)

        return readings

    def discard(self, image_timestamp: float) -> int:
        """Drop samples up to image_timestamp without forwarding them.

        Returns:
            Number of discarded samples
        """
        return len(self._buffer.drain_up_to(image_timestamp))

    @property
    def R_cam_imu(self) -> np.ndarray:
        """Extrinsic rotation used for forwarding."""
        return self._R_cam_imu.copy()
