"""Python VIO Sync - IMU/camera synchronization for visual-inertial odometry."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .config import (
    CalibrationError,
    CameraCalibration,
    CameraModel,
    FilterParameters,
    InitialImuState,
    NoiseParameters,
    ParameterBundle,
    ParameterStore,
    RawCalibration,
    TrackerSettings,
    derive_parameters,
    load_parameters,
)
from .frontend import (
    FrameDispatcher,
    FrameResult,
    ImageDecodeError,
    OrbTrackHandler,
    RawImage,
    decode_mono8,
)
from .io import EurocReplay, ImuCsvReader, MonoImageReader, load_euroc_camchain
from .pipeline import SyncPipeline
from .pose import SE3
from .sync import InertialBuffer, InertialSample, TemporalSynchronizer
from .visualization import DiagnosticsPublisher, RerunImageSink

__all__ = [
    "__version__",
    # Configuration
    "ParameterStore",
    "RawCalibration",
    "CalibrationError",
    "derive_parameters",
    "load_parameters",
    "ParameterBundle",
    "CameraCalibration",
    "CameraModel",
    "NoiseParameters",
    "FilterParameters",
    "TrackerSettings",
    "InitialImuState",
    # Pipeline
    "SyncPipeline",
    # Synchronization
    "InertialSample",
    "InertialBuffer",
    "TemporalSynchronizer",
    # Frontend
    "FrameDispatcher",
    "FrameResult",
    "RawImage",
    "ImageDecodeError",
    "decode_mono8",
    "OrbTrackHandler",
    # Pose
    "SE3",
    # Dataset / I/O
    "ImuCsvReader",
    "MonoImageReader",
    "EurocReplay",
    "load_euroc_camchain",
    # Visualization
    "DiagnosticsPublisher",
    "RerunImageSink",
]
