"""Shared fixtures: recording fakes for the external collaborators."""

import numpy as np
import pytest

from vio_sync.config import ParameterBundle, RawCalibration, derive_parameters


class FakeTracker:
    """Tracker that records every call in order."""

    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.rotation_readings: list[np.ndarray] = []
        self.frames: list[tuple[np.ndarray, float]] = []
        self.grid_size: tuple[int, int] | None = None
        self.ransac_threshold: float | None = None
        self.tracked: dict[int, np.ndarray] = {}
        self.new: dict[int, np.ndarray] = {}
        self.visualization_calls = 0

    def set_grid_size(self, n_rows: int, n_cols: int) -> None:
        self.grid_size = (n_rows, n_cols)

    def set_ransac_threshold(self, threshold: float) -> None:
        self.ransac_threshold = threshold

    def add_rotation_reading(self, gyro: np.ndarray) -> None:
        self.rotation_readings.append(np.array(gyro))
        self.events.append(("gyro", tuple(np.asarray(gyro).tolist())))

    def set_current_frame(self, image: np.ndarray, timestamp: float) -> None:
        self.frames.append((image, timestamp))
        self.events.append(("frame", timestamp))

    def get_tracked_features(self) -> dict[int, np.ndarray]:
        return dict(self.tracked)

    def get_new_features(self) -> dict[int, np.ndarray]:
        return dict(self.new)

    def get_visualization_image(self) -> np.ndarray:
        self.visualization_calls += 1
        return np.zeros((4, 4, 3), dtype=np.uint8)


class FakeEstimator:
    """Estimator that records its initialize() arguments."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def initialize(self, camera, noise, filter_params, initial_state) -> None:
        self.calls.append((camera, noise, filter_params, initial_state))


class FakeSink:
    """Diagnostic sink with a configurable subscriber count."""

    def __init__(self, subscribers: int = 1) -> None:
        self.subscribers = subscribers
        self.published: list[tuple[np.ndarray, float]] = []

    def num_subscribers(self) -> int:
        return self.subscribers

    def publish(self, image: np.ndarray, timestamp: float) -> None:
        self.published.append((image, timestamp))


@pytest.fixture
def tracker() -> FakeTracker:
    """Recording tracker."""
    return FakeTracker()


@pytest.fixture
def estimator() -> FakeEstimator:
    """Recording estimator."""
    return FakeEstimator()


@pytest.fixture
def make_sink():
    """Factory for diagnostic sinks with a given subscriber count."""
    return FakeSink


@pytest.fixture
def raw_calibration() -> RawCalibration:
    """Raw calibration with f_u = f_v = 300 and identity extrinsics."""
    return RawCalibration(intrinsics=(300.0, 300.0, 320.0, 240.0), T_cam_imu=np.eye(4))


@pytest.fixture
def params(raw_calibration: RawCalibration) -> ParameterBundle:
    """Derived parameters for raw_calibration."""
    return derive_parameters(raw_calibration)


def rotation_z(angle: float) -> np.ndarray:
    """Rotation about the z axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


@pytest.fixture
def rot_z():
    """Factory for rotations about z."""
    return rotation_z
