"""Calibration loading and parameter derivation."""

from .calibration import (
    CalibrationError,
    CameraCalibration,
    CameraIntrinsics,
    CameraModel,
    FilterParameters,
    InitialImuState,
    NoiseParameters,
    ParameterBundle,
    RawCalibration,
    TrackerSettings,
)
from .derivation import derive_parameters, load_parameters
from .parameter_store import ParameterStore

__all__ = [
    "ParameterStore",
    "RawCalibration",
    "CalibrationError",
    "derive_parameters",
    "load_parameters",
    # Derived structures
    "ParameterBundle",
    "CameraCalibration",
    "CameraIntrinsics",
    "CameraModel",
    "NoiseParameters",
    "FilterParameters",
    "TrackerSettings",
    "InitialImuState",
]
