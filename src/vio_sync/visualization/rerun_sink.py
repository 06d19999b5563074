"""Rerun-based sink for the diagnostic track image."""

from __future__ import annotations

import cv2
import numpy as np
import rerun as rr
import rerun.blueprint as rrb


class RerunImageSink:
    """Logs track images to a Rerun viewer.

    Entity hierarchy:
        camera/
            tracks      - Track image (tracked features green, new red)
        imu/
            readings    - Number of IMU readings forwarded per frame
    """

    def __init__(
        self,
        app_name: str = "python-vio-sync",
        spawn: bool = True,
        entity_path: str = "camera/tracks",
    ) -> None:
        """Initialize Rerun logging.

        Args:
            app_name: Name for the Rerun application window
            spawn: If True, automatically spawn the Rerun viewer
            entity_path: Entity path for the track image
        """
        rr.init(app_name, spawn=spawn)
        self._entity_path = entity_path
        self._setup_layout()

    def _setup_layout(self) -> None:
        """Configure the viewer layout."""
        blueprint = rrb.Blueprint(
            rrb.Vertical(
                contents=[
                    rrb.Spatial2DView(name="Tracks", origin=self._entity_path),
                    rrb.TimeSeriesView(name="IMU readings", origin="imu/readings"),
                ]
            )
        )
        rr.send_blueprint(blueprint)

    def num_subscribers(self) -> int:
        """Report one subscriber while Rerun recording is enabled."""
        return 1 if rr.is_enabled() else 0

    def publish(self, image: np.ndarray, timestamp: float) -> None:
        """Log a BGR or grayscale track image at the given time (seconds)."""
        rr.set_time("timestamp", duration=timestamp)

        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        rr.log(self._entity_path, rr.Image(image))

    def log_readings_count(self, timestamp: float, count: int) -> None:
        """Log the number of IMU readings forwarded for a frame."""
        rr.set_time("timestamp", duration=timestamp)
        rr.log("imu/readings", rr.Scalars(float(count)))
