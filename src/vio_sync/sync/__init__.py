"""Inertial buffering and image-driven synchronization."""

from .imu_buffer import InertialBuffer, InertialSample
from .synchronizer import TemporalSynchronizer, rotate_to_camera

__all__ = [
    "InertialSample",
    "InertialBuffer",
    "TemporalSynchronizer",
    "rotate_to_camera",
]
