"""Thread-safe, timestamp-ordered queue of inertial samples.

The IMU callback appends to the tail and the image callback drains from the
front. The two may run on different threads, so every append and drain is
serialized by a single lock.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class InertialSample:
    """Single inertial reading waiting to be assigned to an image interval.

    Attributes:
        timestamp: Sample timestamp in seconds
        linear_acceleration: (ax, ay, az) in m/s², body frame
        angular_velocity: (wx, wy, wz) in rad/s, body frame
        dt: Gap in seconds from the previously received sample
    """

    timestamp: float
    linear_acceleration: np.ndarray  # (3,) m/s²
    angular_velocity: np.ndarray  # (3,) rad/s
    dt: float

    def __post_init__(self) -> None:
        """Store read-only float64 copies of the vectors."""
        for name in ("linear_acceleration", "angular_velocity"):
            vec = np.array(getattr(self, name), dtype=np.float64).flatten()
            if vec.shape != (3,):
                raise ValueError(f"{name} must have 3 elements, got {vec.shape}")
            vec.setflags(write=False)
            object.__setattr__(self, name, vec)


class InertialBuffer:
    """Append-only queue of inertial samples, drained at image timestamps.

    Callers must append samples with non-decreasing timestamps. This is
    checked with an assertion, so it is enforced in debug runs only.

    Example usage:
        buffer = InertialBuffer()
        buffer.ingest(sample)
        readings = buffer.drain_up_to(image_timestamp)
    """

    def __init__(self, max_samples: int | None = None) -> None:
        """Initialize an empty buffer.

        Args:
            max_samples: Optional cap; when full, the oldest sample is dropped
                on ingest. None keeps every sample until it is drained.
        """
        if max_samples is not None and max_samples <= 0:
            raise ValueError(f"max_samples must be positive, got {max_samples}")

        self._samples: deque[InertialSample] = deque()
        self._lock = threading.Lock()
        self._max_samples = max_samples
        self._last_timestamp: float | None = None
        self._num_dropped = 0

    def ingest(self, sample: InertialSample) -> None:
        """Append a sample to the tail of the queue."""
        with self._lock:
            assert (
                self._last_timestamp is None or sample.timestamp >= self._last_timestamp
            ), (
                f"Out-of-order inertial sample: {sample.timestamp} "
                f"after {self._last_timestamp}"
            )
            self._last_timestamp = sample.timestamp

            if self._max_samples is not None and len(self._samples) >= self._max_samples:
                self._samples.popleft()
                self._num_dropped += 1
            self._samples.append(sample)

    def drain_up_to(self, cutoff_time: float) -> list[InertialSample]:
        """Remove and return the leading samples with timestamp <= cutoff_time.

        The prefix ends just before the first sample whose timestamp exceeds
        cutoff_time. Later samples stay queued for the next image.

        Args:
            cutoff_time: Image timestamp in seconds

        Returns:
            Drained samples in arrival order (empty if nothing qualifies)
        """
        drained: list[InertialSample] = []
        with self._lock:
            while self._samples and self._samples[0].timestamp <= cutoff_time:
                drained.append(self._samples.popleft())
        return drained

    def clear(self) -> None:
        """Discard all queued samples and forget the ordering reference."""
        with self._lock:
            self._samples.clear()
            self._last_timestamp = None

    def timestamps(self) -> list[float]:
        """Return a snapshot of the queued timestamps."""
        with self._lock:
            return [s.timestamp for s in self._samples]

    @property
    def num_dropped(self) -> int:
        """Number of samples discarded because of the size cap."""
        return self._num_dropped

    @property
    def max_samples(self) -> int | None:
        """Size cap, or None if unbounded."""
        return self._max_samples

    def __len__(self) -> int:
        """Number of queued samples."""
        with self._lock:
            return len(self._samples)
