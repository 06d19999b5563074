"""Per-image processing: decode, synchronize, track, publish."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from .image_decoding import ImageDecodeError, RawImage, decode_mono8

if TYPE_CHECKING:
    from ..interfaces import FeatureTracker
    from ..sync import TemporalSynchronizer
    from ..visualization import DiagnosticsPublisher


@dataclass
class FrameTiming:
    """Timing breakdown for one image."""

    decode_ms: float = 0.0
    sync_ms: float = 0.0
    tracking_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class FrameResult:
    """Output of the dispatcher for one successfully decoded image.

    Attributes:
        frame_id: Sequential id over decoded frames
        timestamp: Image timestamp in seconds
        num_imu_readings: Inertial samples forwarded before this image
        tracked_features: Features carried from previous frames, id -> (u, v)
        new_features: Features first seen in this frame, id -> (u, v)
        published_diagnostics: True if a track image was published
        timing: Processing time breakdown
    """

    frame_id: int
    timestamp: float
    num_imu_readings: int
    tracked_features: dict[int, np.ndarray]
    new_features: dict[int, np.ndarray]
    published_diagnostics: bool = False
    timing: FrameTiming = field(default_factory=FrameTiming)

    @property
    def num_tracked(self) -> int:
        """Number of tracked features."""
        return len(self.tracked_features)

    @property
    def num_new(self) -> int:
        """Number of new features."""
        return len(self.new_features)


class FrameDispatcher:
    """Handles the image-arrived event.

    For each image: decode to mono8, forward the inertial readings up to the
    image timestamp, hand the image to the tracker, collect the tracked and
    new features, and optionally publish diagnostics.

    A decode failure is logged and the frame is dropped without touching the
    inertial buffer (unless drain_on_decode_failure is set). Failed frames
    are never retried.
    """

    def __init__(
        self,
        synchronizer: TemporalSynchronizer,
        tracker: FeatureTracker,
        diagnostics: DiagnosticsPublisher | None = None,
        drain_on_decode_failure: bool = False,
        verbose: bool = True,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            synchronizer: Drains and forwards inertial readings
            tracker: Feature tracker
            diagnostics: Optional diagnostic publisher
            drain_on_decode_failure: If True, readings up to a dropped frame's
                timestamp are discarded instead of being kept for the next frame
            verbose: If True, print per-frame log lines
        """
        self._synchronizer = synchronizer
        self._tracker = tracker
        self._diagnostics = diagnostics
        self._drain_on_decode_failure = drain_on_decode_failure
        self._verbose = verbose

        self._frame_id = 0
        self._num_dropped = 0

    def on_image(self, timestamp: float, raw: RawImage) -> FrameResult | None:
        """Process one image.

        Args:
            timestamp: Image timestamp in seconds
            raw: Undecoded image

        Returns:
            FrameResult, or None if the image could not be decoded
        """
        start_time = time.perf_counter()

        try:
            image = decode_mono8(raw)
        except ImageDecodeError as e:
            self._num_dropped += 1
            print(f"[Dispatcher] Dropping image at t={timestamp:.6f}: {e}")
            if self._drain_on_decode_failure:
                discarded = self._synchronizer.discard(timestamp)
                if self._verbose:
                    print(f"[Dispatcher] Discarded {discarded} imu readings")
            return None

        decode_end = time.perf_counter()

        readings = self._synchronizer.synchronize(timestamp)
        if self._verbose:
            print(f"[Dispatcher] {len(readings)} imu readings in queue")

        sync_end = time.perf_counter()

        self._tracker.set_current_frame(image, timestamp)
        tracked = self._tracker.get_tracked_features()
        new = self._tracker.get_new_features()

        if self._verbose:
            print(
                f"[Dispatcher] Feature counts [tracked: {len(tracked)},  new: {len(new)}]"
            )

        tracking_end = time.perf_counter()

        published = False
        if self._diagnostics is not None:
            published = self._diagnostics.publish_extra(timestamp)

        end_time = time.perf_counter()

        result = FrameResult(
            frame_id=self._frame_id,
            timestamp=timestamp,
            num_imu_readings=len(readings),
            tracked_features=tracked,
            new_features=new,
            published_diagnostics=published,
            timing=FrameTiming(
                decode_ms=(decode_end - start_time) * 1000,
                sync_ms=(sync_end - decode_end) * 1000,
                tracking_ms=(tracking_end - sync_end) * 1000,
                total_ms=(end_time - start_time) * 1000,
            ),
        )
        self._frame_id += 1
        return result

    @property
    def num_frames(self) -> int:
        """Number of frames processed successfully."""
        return self._frame_id

    @property
    def num_dropped(self) -> int:
        """Number of frames dropped on decode failure."""
        return self._num_dropped
