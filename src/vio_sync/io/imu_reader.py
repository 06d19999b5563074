"""EuRoC IMU data reader.

Loads IMU readings (gyroscope and accelerometer) from EuRoC dataset format
and replays them as timestamped events in seconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import numpy as np


@dataclass
class ImuEvent:
    """Single IMU reading as delivered to the pipeline.

    Attributes:
        timestamp: Reading timestamp in seconds
        linear_acceleration: (ax, ay, az) in m/s²
        angular_velocity: (wx, wy, wz) in rad/s
    """

    timestamp: float
    linear_acceleration: np.ndarray  # (3,) m/s²
    angular_velocity: np.ndarray  # (3,) rad/s

    def __post_init__(self) -> None:
        """Ensure arrays have correct shape."""
        self.linear_acceleration = np.asarray(
            self.linear_acceleration, dtype=np.float64
        ).flatten()
        self.angular_velocity = np.asarray(self.angular_velocity, dtype=np.float64).flatten()


class ImuCsvReader:
    """Reader for EuRoC imu0/data.csv.

    CSV format:
        #timestamp [ns],w_x [rad s^-1],w_y,w_z,a_x [m s^-2],a_y,a_z
        1403636579758555392,-0.0991,0.1424,0.0258,8.1125,-0.3759,-2.4357

    Example usage:
        reader = ImuCsvReader("data/euroc/MH_01_easy/mav0")
        for event in reader:
            pipeline.on_imu(event.timestamp, event.linear_acceleration,
                            event.angular_velocity)
    """

    def __init__(self, dataset_path: str | Path) -> None:
        """Initialize IMU reader.

        Args:
            dataset_path: Path to EuRoC mav0 directory

        Raises:
            FileNotFoundError: If imu0/data.csv doesn't exist
        """
        self._dataset_path = Path(dataset_path)
        self._imu_data_path = self._dataset_path / "imu0" / "data.csv"

        if not self._imu_data_path.exists():
            raise FileNotFoundError(
                f"IMU data not found: {self._imu_data_path}\n"
                f"Expected EuRoC format with imu0/data.csv"
            )

        self._events: list[ImuEvent] = []
        self._load_events()

    def _load_events(self) -> None:
        """Load all IMU readings from the CSV file, skipping malformed lines."""
        with open(self._imu_data_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                parts = line.split(",")
                if len(parts) < 7:
                    continue

                try:
                    timestamp = int(parts[0]) * 1e-9
                    wx, wy, wz = float(parts[1]), float(parts[2]), float(parts[3])
                    ax, ay, az = float(parts[4]), float(parts[5]), float(parts[6])
                except (ValueError, IndexError):
                    continue

                self._events.append(
                    ImuEvent(
                        timestamp=timestamp,
                        linear_acceleration=np.array([ax, ay, az]),
                        angular_velocity=np.array([wx, wy, wz]),
                    )
                )

    @property
    def start_timestamp(self) -> float | None:
        """First IMU timestamp in seconds."""
        return self._events[0].timestamp if self._events else None

    @property
    def end_timestamp(self) -> float | None:
        """Last IMU timestamp in seconds."""
        return self._events[-1].timestamp if self._events else None

    def __iter__(self) -> Iterator[ImuEvent]:
        """Iterate over all IMU events in file order."""
        return iter(self._events)

    def __len__(self) -> int:
        """Number of IMU readings."""
        return len(self._events)
