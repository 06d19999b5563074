"""Build a camera-chain parameter store from EuRoC sensor.yaml files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import yaml

from ..config import CalibrationError, ParameterStore
from ..pose import SE3


def _load_sensor_yaml(path: Path) -> dict[str, Any]:
    """Parse a EuRoC sensor.yaml, skipping the OpenCV '%YAML:1.0' directive."""
    if not path.exists():
        raise FileNotFoundError(f"Calibration file not found: {path}")

    content = "\n".join(
        line for line in path.read_text().splitlines() if not line.startswith("%")
    )
    data = yaml.safe_load(content)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid sensor file: {path}")
    return data


def _T_BS(data: dict[str, Any], path: Path) -> np.ndarray:
    T_BS_data = (data.get("T_BS") or {}).get("data")
    if T_BS_data is None or len(T_BS_data) != 16:
        raise CalibrationError(f"Invalid T_BS transform in {path}")
    return np.array(T_BS_data, dtype=np.float64).reshape(4, 4)


def load_euroc_camchain(
    dataset_path: str | Path,
    camera: str = "cam0",
    imu: str = "imu0",
) -> ParameterStore:
    """Convert EuRoC camera and IMU sensor files to a camchain store.

    EuRoC stores T_BS (sensor to body) per sensor. The camera-IMU extrinsic
    is T_cam_imu = inv(T_BS_cam) @ T_BS_imu.

    Args:
        dataset_path: Path to mav0 directory
        camera: Camera directory name
        imu: IMU directory name

    Returns:
        ParameterStore with "kalibr_camera_name" and the camera entries
    """
    dataset_path = Path(dataset_path)
    cam_path = dataset_path / camera / "sensor.yaml"
    imu_path = dataset_path / imu / "sensor.yaml"

    cam_data = _load_sensor_yaml(cam_path)
    T_BS_cam = _T_BS(cam_data, cam_path)

    if imu_path.exists():
        T_BS_imu = _T_BS(_load_sensor_yaml(imu_path), imu_path)
    else:
        print(f"[Calibration] Warning: {imu_path} not found, using identity T_BS for IMU")
        T_BS_imu = np.eye(4)

    T_cam_imu = SE3.from_matrix(T_BS_cam).inverse().to_matrix() @ T_BS_imu

    distortion_model = cam_data.get("distortion_model", "radtan")
    if distortion_model == "radial-tangential":
        distortion_model = "radtan"

    return ParameterStore(
        {
            "kalibr_camera_name": camera,
            camera: {
                "camera_model": cam_data.get("camera_model", "pinhole"),
                "intrinsics": cam_data.get("intrinsics"),
                "distortion_model": distortion_model,
                "distortion_coeffs": cam_data.get(
                    "distortion_coefficients", [0.0, 0.0, 0.0, 0.0]
                ),
                "T_cam_imu": T_cam_imu.tolist(),
                "resolution": cam_data.get("resolution"),
                "rostopic": f"/{camera}/image_raw",
            },
        }
    )
