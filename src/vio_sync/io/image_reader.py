"""EuRoC mono camera reader yielding undecoded images."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from ..frontend.image_decoding import RawImage


@dataclass
class ImageEvent:
    """Camera image as delivered to the pipeline.

    Attributes:
        timestamp: Image timestamp in seconds
        raw: Encoded image (decoding happens in the dispatcher)
    """

    timestamp: float
    raw: RawImage


class MonoImageReader:
    """Reader for one EuRoC camera (cam0 by default).

    Images are returned as encoded PNG bytes so the pipeline's decoder runs
    exactly as it would on transport data.
    """

    def __init__(self, dataset_path: str | Path, camera: str = "cam0") -> None:
        """Initialize reader.

        Args:
            dataset_path: Path to mav0 directory
            camera: Camera directory name

        Raises:
            FileNotFoundError: If the camera directory or data.csv is missing
            ValueError: If data.csv lists no images or has invalid lines
        """
        self.dataset_path = Path(dataset_path)
        self.camera_path = self.dataset_path / camera
        self.data_path = self.camera_path / "data"
        self.csv_path = self.camera_path / "data.csv"

        self._validate_paths()
        self._image_list = self._load_image_list()

        if not self._image_list:
            raise ValueError(f"No images found in {self.csv_path}")

    def _validate_paths(self) -> None:
        if not self.dataset_path.exists():
            raise FileNotFoundError(f"Dataset path does not exist: {self.dataset_path}")

        if not self.data_path.exists():
            raise FileNotFoundError(
                f"{self.camera_path.name}/data directory not found: {self.data_path}"
            )

        if not self.csv_path.exists():
            raise FileNotFoundError(
                f"{self.camera_path.name}/data.csv not found: {self.csv_path}\n"
                f"This file is required to list image timestamps and filenames."
            )

    def _load_image_list(self) -> list[tuple[int, str]]:
        """Parse data.csv into (timestamp_ns, filename) tuples."""
        image_list = []

        with open(self.csv_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                try:
                    timestamp_str, filename = line.split(",")
                    image_list.append((int(timestamp_str.strip()), filename.strip()))
                except ValueError as e:
                    raise ValueError(
                        f"Invalid line in {self.csv_path}: '{line}'\n"
                        f"Expected format: timestamp,filename"
                    ) from e

        return image_list

    def load_event(self, index: int) -> ImageEvent:
        """Load the index-th image as encoded bytes.

        A missing file yields an empty buffer, which the dispatcher reports
        as a decode failure and drops.
        """
        timestamp_ns, filename = self._image_list[index]
        path = self.data_path / filename
        data = path.read_bytes() if path.exists() else b""

        encoding = "jpeg" if path.suffix.lower() in (".jpg", ".jpeg") else "png"
        return ImageEvent(
            timestamp=timestamp_ns * 1e-9,
            raw=RawImage(data=data, encoding=encoding),
        )

    @property
    def timestamps(self) -> list[float]:
        """Image timestamps in seconds."""
        return [t * 1e-9 for t, _ in self._image_list]

    def __len__(self) -> int:
        """Number of images listed in data.csv."""
        return len(self._image_list)

    def __iter__(self) -> Iterator[ImageEvent]:
        """Iterate over images in chronological order."""
        for i in range(len(self._image_list)):
            yield self.load_event(i)
