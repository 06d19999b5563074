"""I/O utilities for EuRoC-format recordings."""

from .euroc_calibration import load_euroc_camchain
from .image_reader import ImageEvent, MonoImageReader
from .imu_reader import ImuCsvReader, ImuEvent
from .replay import EurocReplay, ReplayStats

__all__ = [
    "ImuCsvReader",
    "ImuEvent",
    "MonoImageReader",
    "ImageEvent",
    "EurocReplay",
    "ReplayStats",
    "load_euroc_camchain",
]
