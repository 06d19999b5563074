"""Tests for the ORB track handler."""

import cv2
import numpy as np
import pytest

from vio_sync.frontend import OrbTrackHandler

K = np.array([[300.0, 0.0, 160.0], [0.0, 300.0, 120.0], [0.0, 0.0, 1.0]])


@pytest.fixture
def textured() -> np.ndarray:
    """240x320 image of random 8x8 blocks."""
    rng = np.random.default_rng(0)
    blocks = rng.integers(0, 256, size=(30, 40), dtype=np.uint8)
    return cv2.resize(blocks, (320, 240), interpolation=cv2.INTER_NEAREST)


@pytest.fixture
def handler() -> OrbTrackHandler:
    return OrbTrackHandler(K)


class TestOrbTrackHandler:
    """Test suite for OrbTrackHandler."""

    def test_first_frame_all_new(self, handler, textured):
        handler.set_current_frame(textured, 0.0)

        assert handler.get_tracked_features() == {}
        new = handler.get_new_features()
        assert len(new) > 20
        assert sorted(new) == list(range(len(new)))

    def test_same_frame_is_tracked(self, handler, textured):
        handler.set_current_frame(textured, 0.0)
        first_ids = set(handler.get_new_features())

        handler.set_current_frame(textured, 0.05)

        tracked = handler.get_tracked_features()
        assert len(tracked) > 20
        assert set(tracked) <= first_ids
        assert not set(handler.get_new_features()) & first_ids

    def test_shifted_frame_displacement(self, handler, textured):
        handler.set_ransac_threshold(0.0)
        handler.set_current_frame(textured, 0.0)
        first = handler.get_new_features()

        handler.set_current_frame(np.roll(textured, 4, axis=1), 0.05)

        tracked = handler.get_tracked_features()
        assert len(tracked) > 10
        shifts = np.array([tracked[fid] - first[fid] for fid in tracked])
        np.testing.assert_allclose(np.median(shifts, axis=0), [4.0, 0.0], atol=1.0)

    def test_ransac_keeps_only_known_ids(self, handler, textured):
        handler.set_ransac_threshold(0.000002)
        handler.set_current_frame(textured, 0.0)
        first_ids = set(handler.get_new_features())

        handler.set_current_frame(np.roll(textured, 4, axis=1), 0.05)

        assert set(handler.get_tracked_features()) <= first_ids

    def test_ids_are_not_reused(self, handler, textured):
        handler.set_current_frame(textured, 0.0)
        handler.set_current_frame(np.flipud(textured), 0.05)
        handler.set_current_frame(np.fliplr(textured), 0.1)

        new = handler.get_new_features()
        tracked = handler.get_tracked_features()
        assert not set(new) & set(tracked)

    def test_gyro_integration(self, handler, textured):
        handler.set_current_frame(textured, 0.0)
        handler.add_rotation_reading(np.array([0.0, 0.0, 1.0]))
        handler.add_rotation_reading(np.array([0.0, 0.0, 1.0]))
        assert handler.num_pending_readings == 2

        handler.set_current_frame(textured, 0.1)

        c, s = np.cos(0.1), np.sin(0.1)
        expected = np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
        np.testing.assert_allclose(handler.predicted_rotation, expected, atol=1e-9)
        assert handler.num_pending_readings == 0

    def test_no_rotation_on_first_frame(self, handler, textured):
        handler.add_rotation_reading(np.array([1.0, 0.0, 0.0]))

        handler.set_current_frame(textured, 0.0)

        np.testing.assert_array_equal(handler.predicted_rotation, np.eye(3))

    def test_blank_image(self, handler):
        handler.set_current_frame(np.zeros((240, 320), dtype=np.uint8), 0.0)

        assert handler.get_new_features() == {}
        assert handler.get_tracked_features() == {}

    def test_visualization_before_first_frame(self, handler):
        assert handler.get_visualization_image().shape == (1, 1, 3)

    def test_visualization(self, handler, textured):
        handler.set_current_frame(textured, 0.0)
        handler.set_current_frame(textured, 0.05)

        canvas = handler.get_visualization_image()

        assert canvas.shape == (240, 320, 3)
        assert canvas.dtype == np.uint8
        assert np.any(np.all(canvas == [0, 255, 0], axis=-1))

    def test_from_settings(self, params):
        handler = OrbTrackHandler.from_settings(params.tracker)

        assert handler.grid_size == (8, 8)
        assert handler.ransac_threshold == 0.000002

    def test_invalid_grid(self, handler):
        with pytest.raises(ValueError, match="Grid size must be positive"):
            handler.set_grid_size(0, 8)

    def test_negative_ransac_threshold(self, handler):
        with pytest.raises(ValueError, match="RANSAC threshold must be >= 0"):
            handler.set_ransac_threshold(-1.0)
