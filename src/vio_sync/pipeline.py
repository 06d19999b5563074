"""Visual-inertial input pipeline.

SyncPipeline receives the two sensor streams and bridges them:
- on_imu(): seeds the sample gap on the first reading, then queues samples
- on_image(): decodes the image, forwards the queued readings up to the image
  timestamp to the tracker (rotated into the camera frame), then tracks

The two callbacks may be invoked from different threads; the inertial buffer
is the only state they share and it is lock-protected.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

from .config import InitialImuState, ParameterBundle, load_parameters
from .frontend import FrameDispatcher, FrameResult, OrbTrackHandler, RawImage
from .sync import InertialBuffer, InertialSample, TemporalSynchronizer
from .visualization import DiagnosticsPublisher

if TYPE_CHECKING:
    from .interfaces import DiagnosticSink, Estimator, FeatureTracker


class SyncPipeline:
    """Temporal synchronization between IMU samples and camera images."""

    def __init__(
        self,
        params: ParameterBundle,
        tracker: FeatureTracker,
        estimator: Estimator | None = None,
        diagnostic_sink: DiagnosticSink | None = None,
        max_buffered_samples: int | None = None,
        drain_on_decode_failure: bool = False,
        verbose: bool = True,
    ) -> None:
        """Initialize the pipeline.

        Args:
            params: Derived calibration parameters
            tracker: Feature tracker receiving gyro readings and frames
            estimator: Optional estimator, initialized by setup_estimator()
            diagnostic_sink: Optional output for the track image
            max_buffered_samples: Optional cap on queued IMU samples
            drain_on_decode_failure: If True, a dropped frame still consumes
                the IMU readings up to its timestamp
            verbose: If True, print per-frame log lines
        """
        self._params = params
        self._tracker = tracker
        self._estimator = estimator

        self._buffer = InertialBuffer(max_samples=max_buffered_samples)
        self._synchronizer = TemporalSynchronizer(
            buffer=self._buffer,
            R_cam_imu=params.camera_calibration.extrinsic_rotation,
            tracker=tracker,
        )
        self._diagnostics = DiagnosticsPublisher(tracker, diagnostic_sink)
        self._dispatcher = FrameDispatcher(
            synchronizer=self._synchronizer,
            tracker=tracker,
            diagnostics=self._diagnostics,
            drain_on_decode_failure=drain_on_decode_failure,
            verbose=verbose,
        )

        # Guards the seed reference against reset() from another thread
        self._imu_lock = threading.Lock()
        self._prev_imu_time: float | None = None

        self.setup_tracker()

    @classmethod
    def from_calibration_files(
        cls,
        camchain_path: str | Path,
        tuning_path: str | Path | None = None,
        **kwargs,
    ) -> SyncPipeline:
        """Create a pipeline with an OrbTrackHandler from calibration files.

        Args:
            camchain_path: Kalibr camchain YAML
            tuning_path: Optional YAML with tuning constants
            **kwargs: Forwarded to the constructor

        Returns:
            Configured SyncPipeline
        """
        params = load_parameters(camchain_path, tuning_path)
        tracker = OrbTrackHandler(params.tracker.camera_matrix)
        return cls(params=params, tracker=tracker, **kwargs)

    def setup_tracker(self) -> None:
        """Apply grid size and RANSAC threshold to the tracker."""
        settings = self._params.tracker
        self._tracker.set_grid_size(settings.n_grid_rows, settings.n_grid_cols)
        self._tracker.set_ransac_threshold(settings.ransac_threshold)

    def setup_estimator(self, initial_state: InitialImuState | None = None) -> None:
        """Initialize the estimator with the derived parameters.

        Raises:
            RuntimeError: If the pipeline has no estimator
        """
        if self._estimator is None:
            raise RuntimeError("setup_estimator() called without an estimator")

        self._estimator.initialize(
            self._params.camera,
            self._params.noise,
            self._params.filter,
            initial_state if initial_state is not None else InitialImuState(),
        )

    def on_imu(
        self,
        timestamp: float,
        linear_acceleration: np.ndarray,
        angular_velocity: np.ndarray,
    ) -> InertialSample | None:
        """Handle one IMU reading.

        The first reading after construction or reset() only seeds the gap
        used for dt; it is not queued.

        Args:
            timestamp: Reading timestamp in seconds
            linear_acceleration: (3,) m/s², body frame
            angular_velocity: (3,) rad/s, body frame

        Returns:
            The queued sample, or None for the seed reading
        """
        with self._imu_lock:
            if self._prev_imu_time is None:
                self._prev_imu_time = timestamp
                return None

            sample = InertialSample(
                timestamp=timestamp,
                linear_acceleration=linear_acceleration,
                angular_velocity=angular_velocity,
                dt=timestamp - self._prev_imu_time,
            )
            self._prev_imu_time = timestamp
            self._buffer.ingest(sample)
            return sample

    def on_image(self, timestamp: float, raw: RawImage) -> FrameResult | None:
        """Handle one camera image.

        Returns:
            FrameResult, or None if the image was dropped
        """
        return self._dispatcher.on_image(timestamp, raw)

    def reset(self) -> None:
        """Clear queued samples and re-arm the first-reading seed.

        Safe to call while the IMU callback runs on another thread: a reading
        in flight is either queued before the clear or becomes the new seed.
        """
        with self._imu_lock:
            self._buffer.clear()
            self._prev_imu_time = None

    @property
    def params(self) -> ParameterBundle:
        """Derived calibration parameters."""
        return self._params

    @property
    def tracker(self) -> FeatureTracker:
        """The feature tracker."""
        return self._tracker

    @property
    def num_buffered_samples(self) -> int:
        """IMU samples waiting for an image."""
        return len(self._buffer)

    @property
    def buffered_timestamps(self) -> list[float]:
        """Snapshot of queued IMU timestamps."""
        return self._buffer.timestamps()

    @property
    def num_frames(self) -> int:
        """Frames processed successfully."""
        return self._dispatcher.num_frames

    @property
    def num_dropped_frames(self) -> int:
        """Frames dropped on decode failure."""
        return self._dispatcher.num_dropped
