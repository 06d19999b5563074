"""ORB-based reference implementation of the feature tracker interface."""

from __future__ import annotations

from typing import TYPE_CHECKING

import cv2
import numpy as np

if TYPE_CHECKING:
    from ..config import TrackerSettings


class OrbTrackHandler:
    """Frame-to-frame feature tracker using ORB features.

    Features are detected with ORB and bucketed on an n_rows x n_cols grid so
    they spread over the image. Each frame is matched against the previous
    one with brute-force Hamming matching and Lowe's ratio test, and outliers
    are removed with a RANSAC fundamental matrix fit. Matched features keep
    their id; unmatched detections get fresh ids.

    Gyro readings (camera frame, rad/s) added between two frames are
    integrated into the predicted inter-frame rotation, assuming they are
    evenly spaced over the frame interval.
    """

    def __init__(
        self,
        camera_matrix: np.ndarray,
        n_features: int = 500,
        ratio_threshold: float = 0.75,
        max_hamming_distance: int = 50,
        min_ransac_matches: int = 8,
    ) -> None:
        """Initialize the tracker.

        Args:
            camera_matrix: 3x3 intrinsic matrix K
            n_features: Maximum ORB features per frame before bucketing
            ratio_threshold: Lowe's ratio test threshold
            max_hamming_distance: Maximum Hamming distance for a valid match
            min_ransac_matches: Below this many matches RANSAC is skipped
        """
        self._K = np.asarray(camera_matrix, dtype=np.float64)
        self._orb = cv2.ORB_create(nfeatures=n_features)
        self._bf_matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
        self._n_features = n_features
        self._ratio_threshold = ratio_threshold
        self._max_distance = max_hamming_distance
        self._min_ransac_matches = min_ransac_matches

        self._n_grid_rows = 8
        self._n_grid_cols = 8
        self._ransac_threshold = 0.0

        self._gyro_readings: list[np.ndarray] = []
        self._predicted_rotation = np.eye(3)
        self._next_id = 0

        self._prev_timestamp: float | None = None
        self._prev_ids = np.empty(0, dtype=np.int64)
        self._prev_points = np.empty((0, 2), dtype=np.float32)
        self._prev_descriptors: np.ndarray | None = None

        self._image: np.ndarray | None = None
        self._tracked: dict[int, np.ndarray] = {}
        self._new: dict[int, np.ndarray] = {}
        self._track_origins: dict[int, np.ndarray] = {}

    @classmethod
    def from_settings(cls, settings: TrackerSettings, **kwargs) -> OrbTrackHandler:
        """Create a tracker configured from derived tracker settings."""
        tracker = cls(settings.camera_matrix, **kwargs)
        tracker.set_grid_size(settings.n_grid_rows, settings.n_grid_cols)
        tracker.set_ransac_threshold(settings.ransac_threshold)
        return tracker

    def set_grid_size(self, n_rows: int, n_cols: int) -> None:
        if n_rows <= 0 or n_cols <= 0:
            raise ValueError(f"Grid size must be positive, got {n_rows}x{n_cols}")
        self._n_grid_rows = n_rows
        self._n_grid_cols = n_cols

    def set_ransac_threshold(self, threshold: float) -> None:
        """Set the RANSAC threshold as a squared normalized residual.

        Converted to pixels as sqrt(threshold) * f_u. Zero disables RANSAC.
        """
        if threshold < 0:
            raise ValueError(f"RANSAC threshold must be >= 0, got {threshold}")
        self._ransac_threshold = threshold

    def add_rotation_reading(self, gyro: np.ndarray) -> None:
        self._gyro_readings.append(np.asarray(gyro, dtype=np.float64).flatten())

    def set_current_frame(self, image: np.ndarray, timestamp: float) -> None:
        """Detect features in a new frame and track them from the previous one."""
        self._predicted_rotation = self._integrate_gyro(timestamp)
        self._gyro_readings = []

        points, descriptors = self._detect(image)

        prev_idx, curr_idx = self._match(descriptors)
        prev_idx, curr_idx = self._reject_outliers(points, prev_idx, curr_idx)

        curr_to_prev = dict(zip(curr_idx.tolist(), prev_idx.tolist()))
        ids = np.empty(len(points), dtype=np.int64)

        self._tracked = {}
        self._new = {}
        origins: dict[int, np.ndarray] = {}
        for i in range(len(points)):
            j = curr_to_prev.get(i)
            if j is not None:
                fid = int(self._prev_ids[j])
                self._tracked[fid] = points[i].copy()
                origins[fid] = self._prev_points[j].copy()
            else:
                fid = self._next_id
                self._new[fid] = points[i].copy()
                self._next_id += 1
            ids[i] = fid

        self._track_origins = origins
        self._prev_ids = ids
        self._prev_points = points
        self._prev_descriptors = descriptors
        self._prev_timestamp = timestamp
        self._image = image

    def _integrate_gyro(self, timestamp: float) -> np.ndarray:
        R = np.eye(3)
        if self._prev_timestamp is None or not self._gyro_readings:
            return R

        dt = (timestamp - self._prev_timestamp) / len(self._gyro_readings)
        for omega in self._gyro_readings:
            dR, _ = cv2.Rodrigues(omega * dt)
            R = R @ dR
        return R

    def _detect(self, image: np.ndarray) -> tuple[np.ndarray, np.ndarray | None]:
        keypoints = self._orb.detect(image, None)
        keypoints = self._bucket(keypoints, image.shape[:2])

        if len(keypoints) == 0:
            return np.empty((0, 2), dtype=np.float32), None

        keypoints, descriptors = self._orb.compute(image, keypoints)
        if descriptors is None or len(keypoints) == 0:
            return np.empty((0, 2), dtype=np.float32), None

        points = np.array([kp.pt for kp in keypoints], dtype=np.float32)
        return points, descriptors

    def _bucket(
        self, keypoints: tuple[cv2.KeyPoint, ...], shape: tuple[int, int]
    ) -> list[cv2.KeyPoint]:
        """Keep the strongest keypoints in each grid cell."""
        height, width = shape
        n_cells = self._n_grid_rows * self._n_grid_cols
        per_cell = max(1, self._n_features // n_cells)

        cells: dict[tuple[int, int], list[cv2.KeyPoint]] = {}
        for kp in keypoints:
            row = min(int(kp.pt[1] * self._n_grid_rows / height), self._n_grid_rows - 1)
            col = min(int(kp.pt[0] * self._n_grid_cols / width), self._n_grid_cols - 1)
            cells.setdefault((row, col), []).append(kp)

        kept: list[cv2.KeyPoint] = []
        for cell_kps in cells.values():
            cell_kps.sort(key=lambda kp: kp.response, reverse=True)
            kept.extend(cell_kps[:per_cell])
        return kept

    def _match(self, descriptors: np.ndarray | None) -> tuple[np.ndarray, np.ndarray]:
        """Ratio-test matching of previous descriptors against current ones."""
        empty = np.empty(0, dtype=np.int64)
        if descriptors is None or self._prev_descriptors is None:
            return empty, empty

        knn_matches = self._bf_matcher.knnMatch(self._prev_descriptors, descriptors, k=2)

        best_for_curr: dict[int, tuple[float, int]] = {}
        for match_pair in knn_matches:
            if len(match_pair) == 0:
                continue
            best = match_pair[0]
            if best.distance > self._max_distance:
                continue
            if (
                len(match_pair) >= 2
                and best.distance > self._ratio_threshold * match_pair[1].distance
            ):
                continue
            # One previous feature per current feature
            current = best_for_curr.get(best.trainIdx)
            if current is None or best.distance < current[0]:
                best_for_curr[best.trainIdx] = (best.distance, best.queryIdx)

        if not best_for_curr:
            return empty, empty

        curr_idx = np.array(list(best_for_curr.keys()), dtype=np.int64)
        prev_idx = np.array([v[1] for v in best_for_curr.values()], dtype=np.int64)
        return prev_idx, curr_idx

    def _reject_outliers(
        self, points: np.ndarray, prev_idx: np.ndarray, curr_idx: np.ndarray
    ) -> tuple[np.ndarray, np.ndarray]:
        if self._ransac_threshold <= 0 or len(prev_idx) < self._min_ransac_matches:
            return prev_idx, curr_idx

        pixel_threshold = float(np.sqrt(self._ransac_threshold) * self._K[0, 0])
        try:
            _, mask = cv2.findFundamentalMat(
                self._prev_points[prev_idx],
                points[curr_idx],
                cv2.FM_RANSAC,
                pixel_threshold,
                0.99,
            )
        except cv2.error:
            return prev_idx, curr_idx

        if mask is None:
            return prev_idx, curr_idx

        inliers = mask.ravel().astype(bool)
        return prev_idx[inliers], curr_idx[inliers]

    def get_tracked_features(self) -> dict[int, np.ndarray]:
        return {fid: pt.copy() for fid, pt in self._tracked.items()}

    def get_new_features(self) -> dict[int, np.ndarray]:
        return {fid: pt.copy() for fid, pt in self._new.items()}

    def get_visualization_image(self) -> np.ndarray:
        """Return a BGR image with tracks (green) and new features (red)."""
        if self._image is None:
            return np.zeros((1, 1, 3), dtype=np.uint8)

        canvas = cv2.cvtColor(self._image, cv2.COLOR_GRAY2BGR)
        for fid, pt in self._tracked.items():
            origin = self._track_origins.get(fid)
            if origin is not None:
                cv2.line(
                    canvas,
                    (int(origin[0]), int(origin[1])),
                    (int(pt[0]), int(pt[1])),
                    (0, 255, 0),
                    1,
                )
            cv2.circle(canvas, (int(pt[0]), int(pt[1])), 3, (0, 255, 0), -1)
        for pt in self._new.values():
            cv2.circle(canvas, (int(pt[0]), int(pt[1])), 3, (0, 0, 255), -1)
        return canvas

    @property
    def predicted_rotation(self) -> np.ndarray:
        """Gyro-integrated rotation from the previous frame to the current one."""
        return self._predicted_rotation.copy()

    @property
    def grid_size(self) -> tuple[int, int]:
        """Return (n_rows, n_cols)."""
        return self._n_grid_rows, self._n_grid_cols

    @property
    def ransac_threshold(self) -> float:
        """Return the RANSAC threshold."""
        return self._ransac_threshold

    @property
    def num_pending_readings(self) -> int:
        """Gyro readings added since the last frame."""
        return len(self._gyro_readings)
