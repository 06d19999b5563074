"""Derive estimator, camera and tracker parameters from raw calibration."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import numpy as np

from ..pose import SE3
from .calibration import (
    CalibrationError,
    CameraCalibration,
    CameraIntrinsics,
    CameraModel,
    FilterParameters,
    NoiseParameters,
    ParameterBundle,
    RawCalibration,
    TrackerSettings,
)
from .parameter_store import ParameterStore

# Orthonormality tolerance for the extrinsic rotation
ROTATION_TOLERANCE = 1e-5


def derive_parameters(raw: RawCalibration) -> ParameterBundle:
    """Build every structure the estimator and tracker need at startup.

    Pixel-valued quantities are converted to the normalized image plane by
    dividing by the focal length before squaring:

        pixel_noise_u = (feature_covariance / f_u)^2
        pixel_noise_v = (feature_covariance / f_v)^2
        max_gn_cost_norm = (max_gn_cost_norm / f_u)^2

    All other thresholds pass through unchanged. keyframe_transl_dist feeds
    redundancy_angle_thresh and keyframe_rot_dist feeds
    redundancy_distance_thresh.

    Args:
        raw: Raw calibration constants

    Returns:
        ParameterBundle with camera, noise, filter and tracker parameters

    Raises:
        CalibrationError: If the extrinsic rotation is not orthonormal or a
            focal length is not positive
    """
    f_u, f_v, c_u, c_v = raw.intrinsics
    if f_u <= 0.0 or f_v <= 0.0:
        raise CalibrationError(f"Focal lengths must be positive, got f_u={f_u}, f_v={f_v}")

    T_cam_imu = SE3.from_matrix(raw.T_cam_imu)
    if not T_cam_imu.is_orthonormal(atol=ROTATION_TOLERANCE):
        raise CalibrationError(
            f"T_cam_imu rotation block is not orthonormal:\n{T_cam_imu.rotation}"
        )

    intrinsics = CameraIntrinsics(f_u=f_u, f_v=f_v, c_u=c_u, c_v=c_v)
    distortion = np.array(raw.distortion_coeffs, dtype=np.float64)

    camera_calibration = CameraCalibration(
        intrinsics=intrinsics,
        distortion_model=raw.distortion_model,
        distortion_coeffs=distortion,
        extrinsic_rotation=T_cam_imu.rotation,
        extrinsic_translation=T_cam_imu.translation,
    )

    camera = CameraModel(
        f_u=f_u,
        f_v=f_v,
        c_u=c_u,
        c_v=c_v,
        q_CI=T_cam_imu.to_quaternion(),
        p_C_I=T_cam_imu.translation.copy(),
    )

    process_vars = np.repeat([raw.w_var, raw.dbg_var, raw.a_var, raw.dba_var], 3)
    state_vars = np.repeat(
        [
            raw.q_var_init,
            raw.bg_var_init,
            raw.v_var_init,
            raw.ba_var_init,
            raw.p_var_init,
        ],
        3,
    )

    noise = NoiseParameters(
        initial_state_covariance=np.diag(state_vars.astype(np.float64)),
        process_noise_covariance=np.diag(process_vars.astype(np.float64)),
        pixel_noise_u=(raw.feature_covariance / f_u) ** 2,
        pixel_noise_v=(raw.feature_covariance / f_v) ** 2,
    )

    filter_params = FilterParameters(
        max_gn_cost_norm=(raw.max_gn_cost_norm / f_u) ** 2,
        translation_threshold=raw.translation_threshold,
        min_rcond=raw.min_rcond,
        redundancy_angle_thresh=raw.keyframe_transl_dist,
        redundancy_distance_thresh=raw.keyframe_rot_dist,
        max_track_length=raw.max_track_length,
        min_track_length=raw.min_track_length,
        max_cam_states=raw.max_cam_states,
    )

    tracker = TrackerSettings(
        camera_matrix=intrinsics.to_matrix(),
        distortion_coeffs=distortion.copy(),
        distortion_model=raw.distortion_model,
        n_grid_rows=raw.n_grid_rows,
        n_grid_cols=raw.n_grid_cols,
        ransac_threshold=raw.ransac_threshold,
    )

    return ParameterBundle(
        camera_name=raw.camera_name,
        camera_topic=raw.camera_topic,
        camera_calibration=camera_calibration,
        camera=camera,
        noise=noise,
        filter=filter_params,
        tracker=tracker,
        T_cam_imu=raw.T_cam_imu.copy(),
    )


def load_parameters(
    camchain_path: str | Path,
    tuning_path: str | Path | None = None,
    verbose: bool = True,
    overrides: Mapping[str, Any] | None = None,
) -> ParameterBundle:
    """Load calibration files and derive the parameter bundle.

    Args:
        camchain_path: Kalibr camchain YAML
        tuning_path: Optional YAML with tuning constants
        verbose: If True, print the load summary
        overrides: Keys that replace values from both files

    Returns:
        Derived ParameterBundle
    """
    store = ParameterStore.from_yaml(camchain_path, tuning_path)
    if overrides:
        store = store.with_overrides(overrides)
    bundle = derive_parameters(RawCalibration.from_store(store))

    if verbose:
        for line in bundle.describe():
            print(f"[Calibration] {line}")

    return bundle
