"""Interfaces of the external collaborators driven by the pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import numpy as np

if TYPE_CHECKING:
    from .config import (
        CameraModel,
        FilterParameters,
        InitialImuState,
        NoiseParameters,
    )


class FeatureTracker(Protocol):
    """Feature detection and tracking across frames."""

    def set_grid_size(self, n_rows: int, n_cols: int) -> None: ...

    def set_ransac_threshold(self, threshold: float) -> None: ...

    def add_rotation_reading(self, gyro: np.ndarray) -> None:
        """Accumulate one camera-frame angular velocity reading."""
        ...

    def set_current_frame(self, image: np.ndarray, timestamp: float) -> None: ...

    def get_tracked_features(self) -> dict[int, np.ndarray]:
        """Features carried over from the previous frame, id -> (u, v)."""
        ...

    def get_new_features(self) -> dict[int, np.ndarray]:
        """Features initialized on the current frame, id -> (u, v)."""
        ...

    def get_visualization_image(self) -> np.ndarray: ...


class Estimator(Protocol):
    """Filter-based state estimator."""

    def initialize(
        self,
        camera: CameraModel,
        noise: NoiseParameters,
        filter_params: FilterParameters,
        initial_state: InitialImuState,
    ) -> None: ...


class DiagnosticSink(Protocol):
    """Output for the diagnostic track image."""

    def num_subscribers(self) -> int: ...

    def publish(self, image: np.ndarray, timestamp: float) -> None: ...
