"""Calibration records and the parameter bundles handed to the estimator.

RawCalibration collects every tunable in one place with its default. The
derived structures (CameraCalibration, CameraModel, NoiseParameters,
FilterParameters, TrackerSettings) are built once at startup by
derive_parameters() and treated as read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .parameter_store import ParameterStore


class CalibrationError(ValueError):
    """Fatal configuration error; the estimator cannot be initialized."""


@dataclass(frozen=True)
class CameraIntrinsics:
    """Camera intrinsic parameters (pinhole model)."""

    f_u: float  # Focal length x (pixels)
    f_v: float  # Focal length y (pixels)
    c_u: float  # Principal point x (pixels)
    c_v: float  # Principal point y (pixels)

    def to_matrix(self) -> np.ndarray:
        """Return 3x3 camera intrinsic matrix K."""
        return np.array(
            [[self.f_u, 0.0, self.c_u], [0.0, self.f_v, self.c_v], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass(frozen=True)
class CameraCalibration:
    """Camera model plus camera-IMU extrinsics.

    Attributes:
        intrinsics: Pinhole intrinsics
        distortion_model: Distortion model name (e.g. "radtan", "equidistant")
        distortion_coeffs: (4,) distortion coefficients
        extrinsic_rotation: R_cam_imu, 3x3 orthonormal
        extrinsic_translation: p_cam_imu, (3,)
    """

    intrinsics: CameraIntrinsics
    distortion_model: str
    distortion_coeffs: np.ndarray
    extrinsic_rotation: np.ndarray
    extrinsic_translation: np.ndarray


@dataclass(frozen=True)
class CameraModel:
    """Camera parameters in the layout the estimator initializer expects."""

    f_u: float
    f_v: float
    c_u: float
    c_v: float
    q_CI: np.ndarray  # (4,) Hamilton quaternion (w, x, y, z) of R_cam_imu
    p_C_I: np.ndarray  # (3,) camera-IMU translation


@dataclass(frozen=True)
class NoiseParameters:
    """Diagonal covariances for the 15-dim state and 12-dim process noise.

    State order: orientation, gyro bias, velocity, accel bias, position.
    Process noise order: angular velocity, gyro bias rate, acceleration,
    accel bias rate.
    """

    initial_state_covariance: np.ndarray  # (15, 15)
    process_noise_covariance: np.ndarray  # (12, 12)
    pixel_noise_u: float  # normalized image-plane variance
    pixel_noise_v: float


@dataclass(frozen=True)
class FilterParameters:
    """Update and marginalization thresholds for the estimator."""

    max_gn_cost_norm: float  # normalized by f_u and squared
    translation_threshold: float
    min_rcond: float
    redundancy_angle_thresh: float
    redundancy_distance_thresh: float
    max_track_length: int
    min_track_length: int
    max_cam_states: int


@dataclass(frozen=True)
class TrackerSettings:
    """Startup configuration for the feature tracker."""

    camera_matrix: np.ndarray  # 3x3 K
    distortion_coeffs: np.ndarray  # (4,)
    distortion_model: str
    n_grid_rows: int
    n_grid_cols: int
    ransac_threshold: float


@dataclass(frozen=True)
class InitialImuState:
    """Initial inertial state passed to the estimator.

    Attributes:
        position: Position in the global frame
        velocity: Velocity in the global frame
        orientation: Hamilton quaternion (w, x, y, z), global to IMU
        bias_gyro: Gyroscope bias in rad/s
        bias_accel: Accelerometer bias in m/s²
        gravity: Gravity vector in the global frame
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(
        default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0])
    )
    bias_gyro: np.ndarray = field(default_factory=lambda: np.zeros(3))
    bias_accel: np.ndarray = field(default_factory=lambda: np.zeros(3))
    gravity: np.ndarray = field(default_factory=lambda: np.array([0.0, 0.0, -9.81]))


@dataclass(frozen=True)
class ParameterBundle:
    """Everything derived from the raw calibration at startup."""

    camera_name: str
    camera_topic: str
    camera_calibration: CameraCalibration
    camera: CameraModel
    noise: NoiseParameters
    filter: FilterParameters
    tracker: TrackerSettings
    T_cam_imu: np.ndarray  # (4, 4) as loaded

    def describe(self) -> list[str]:
        """Return the human-readable load summary."""
        k = self.camera_calibration.intrinsics
        d = self.camera_calibration.distortion_coeffs
        lines = [
            f"Loaded {self.camera_name}",
            f"-Intrinsics {k.f_u}, {k.f_v}, {k.c_u}, {k.c_v}",
            f"-Distortion {d[0]}, {d[1]}, {d[2]}, {d[3]}",
            f"-Camera topic {self.camera_topic}",
            "-T_cam_imu",
        ]
        lines.extend(f"  {row}" for row in np.array2string(self.T_cam_imu).splitlines())
        return lines


@dataclass
class RawCalibration:
    """Raw calibration constants with their documented defaults.

    Intrinsics and T_cam_imu are required. Every other field falls back to
    the default below when the parameter source omits it.
    """

    intrinsics: tuple[float, float, float, float]  # [f_u, f_v, c_u, c_v]
    T_cam_imu: np.ndarray  # (4, 4)

    camera_name: str = "cam0"
    camera_model: str = "pinhole"
    camera_topic: str = ""
    distortion_model: str = "radtan"
    distortion_coeffs: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)

    # Tracker
    n_grid_rows: int = 8
    n_grid_cols: int = 8
    ransac_threshold: float = 0.000002

    # Feature measurement noise, pixels (standard deviation)
    feature_covariance: float = 7.0

    # Process noise variances
    w_var: float = 1e-5
    dbg_var: float = 3.6733e-5
    a_var: float = 1e-3
    dba_var: float = 7e-4

    # Initial state variances
    q_var_init: float = 1e-5
    bg_var_init: float = 1e-2
    v_var_init: float = 1e-2
    ba_var_init: float = 1e-2
    p_var_init: float = 1e-12

    # Filter thresholds
    max_gn_cost_norm: float = 11.0  # pixels
    translation_threshold: float = 0.05
    min_rcond: float = 3e-12
    keyframe_transl_dist: float = 0.005
    keyframe_rot_dist: float = 0.05
    max_track_length: int = 1000
    min_track_length: int = 3
    max_cam_states: int = 20

    def __post_init__(self) -> None:
        self.intrinsics = _float_tuple(self.intrinsics, 4, "intrinsics")
        self.distortion_coeffs = _float_tuple(
            self.distortion_coeffs, 4, "distortion_coeffs"
        )
        self.T_cam_imu = _transform_matrix(self.T_cam_imu)

    @classmethod
    def from_store(cls, store: ParameterStore) -> RawCalibration:
        """Read every calibration constant from a parameter store.

        Camera entries are read under the camera name given by
        "kalibr_camera_name" (default "cam0"); tuning constants are read
        from top-level keys.

        Raises:
            CalibrationError: If intrinsics or T_cam_imu are missing or malformed
        """
        cam = str(store.get("kalibr_camera_name", "cam0"))

        try:
            intrinsics = store.require(f"{cam}/intrinsics")
            T_cam_imu = store.require(f"{cam}/T_cam_imu")
        except KeyError as e:
            raise CalibrationError(e.args[0]) from e

        return cls(
            intrinsics=intrinsics,
            T_cam_imu=T_cam_imu,
            camera_name=cam,
            camera_model=str(store.get(f"{cam}/camera_model", "pinhole")),
            camera_topic=str(store.get(f"{cam}/rostopic", "")),
            distortion_model=str(store.get(f"{cam}/distortion_model", "radtan")),
            distortion_coeffs=store.get(
                f"{cam}/distortion_coeffs", (0.0, 0.0, 0.0, 0.0)
            ),
            n_grid_rows=_read_int(store, "n_grid_rows", 8),
            n_grid_cols=_read_int(store, "n_grid_cols", 8),
            ransac_threshold=_read_float(store, "ransac_threshold", 0.000002),
            feature_covariance=_read_float(store, "feature_covariance", 7.0),
            w_var=_read_float(store, "imu_vars/w_var", 1e-5),
            dbg_var=_read_float(store, "imu_vars/dbg_var", 3.6733e-5),
            a_var=_read_float(store, "imu_vars/a_var", 1e-3),
            dba_var=_read_float(store, "imu_vars/dba_var", 7e-4),
            q_var_init=_read_float(store, "imu_covars/q_var_init", 1e-5),
            bg_var_init=_read_float(store, "imu_covars/bg_var_init", 1e-2),
            v_var_init=_read_float(store, "imu_covars/v_var_init", 1e-2),
            ba_var_init=_read_float(store, "imu_covars/ba_var_init", 1e-2),
            p_var_init=_read_float(store, "imu_covars/p_var_init", 1e-12),
            max_gn_cost_norm=_read_float(store, "max_gn_cost_norm", 11.0),
            translation_threshold=_read_float(store, "translation_threshold", 0.05),
            min_rcond=_read_float(store, "min_rcond", 3e-12),
            keyframe_transl_dist=_read_float(store, "keyframe_transl_dist", 0.005),
            keyframe_rot_dist=_read_float(store, "keyframe_rot_dist", 0.05),
            max_track_length=_read_int(store, "max_track_length", 1000),
            min_track_length=_read_int(store, "min_track_length", 3),
            max_cam_states=_read_int(store, "max_cam_states", 20),
        )


def _read_float(store: ParameterStore, key: str, default: float) -> float:
    value = store.get(key, default)
    # PyYAML reads exponents without a dot (1e-5) as strings
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as e:
            raise CalibrationError(f"{key} must be a number, got {value!r}") from e
    if not _is_number(value):
        raise CalibrationError(f"{key} must be a number, got {value!r}")
    return float(value)


def _read_int(store: ParameterStore, key: str, default: int) -> int:
    value = store.get(key, default)
    if not _is_number(value) or not float(value).is_integer():
        raise CalibrationError(f"{key} must be an integer, got {value!r}")
    return int(value)


def _is_number(value: object) -> bool:
    # bool is an int subclass but never a valid calibration entry
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(
        value, (bool, np.bool_)
    )


def _float_tuple(values: object, length: int, name: str) -> tuple:
    if isinstance(values, np.ndarray):
        values = values.tolist()
    if not isinstance(values, (list, tuple)) or len(values) != length:
        raise CalibrationError(f"{name} must be a list of {length} numbers, got {values!r}")
    if not all(_is_number(v) for v in values):
        raise CalibrationError(f"{name} must contain only numbers, got {values!r}")
    return tuple(float(v) for v in values)


def _transform_matrix(T: object) -> np.ndarray:
    """Validate a nested 4x4 numeric array and return it as float64."""
    if isinstance(T, np.ndarray):
        if T.shape != (4, 4) or not np.issubdtype(T.dtype, np.number):
            raise CalibrationError(
                f"T_cam_imu must be a 4x4 numeric array, got shape {T.shape}"
            )
        matrix = T.astype(np.float64)
    else:
        if not isinstance(T, (list, tuple)) or len(T) != 4:
            raise CalibrationError(f"T_cam_imu must have 4 rows, got {T!r}")
        for i, row in enumerate(T):
            if not isinstance(row, (list, tuple)) or len(row) != 4:
                raise CalibrationError(f"T_cam_imu row {i} must have 4 entries, got {row!r}")
            for j, value in enumerate(row):
                if not _is_number(value):
                    raise CalibrationError(
                        f"T_cam_imu[{i}][{j}] is not numeric: {value!r}"
                    )
        matrix = np.array(T, dtype=np.float64)

    if not np.all(np.isfinite(matrix)):
        raise CalibrationError("T_cam_imu contains non-finite entries")
    return matrix
