"""Tests for SyncPipeline and FrameDispatcher."""

import threading

import numpy as np
import pytest

from vio_sync.config import InitialImuState, RawCalibration, derive_parameters
from vio_sync.frontend import RawImage
from vio_sync.pipeline import SyncPipeline

ACC = np.array([0.0, 0.0, 9.81])
GYRO = np.array([0.0, 0.0, 0.1])


def mono_image(value: int = 128) -> RawImage:
    return RawImage.from_array(np.full((48, 64), value, dtype=np.uint8), "mono8")


def broken_image() -> RawImage:
    return RawImage(data=b"\x00\x01", encoding="png")


@pytest.fixture
def pipeline(params, tracker) -> SyncPipeline:
    return SyncPipeline(params, tracker, verbose=False)


class TestImuPath:
    """Test suite for the IMU-arrived path."""

    def test_first_reading_only_seeds(self, pipeline):
        assert pipeline.on_imu(0.9, ACC, GYRO) is None
        assert pipeline.num_buffered_samples == 0

    def test_dt_is_gap_to_previous_reading(self, pipeline):
        pipeline.on_imu(0.9, ACC, GYRO)

        first = pipeline.on_imu(1.0, ACC, GYRO)
        second = pipeline.on_imu(1.05, ACC, GYRO)

        assert first.dt == pytest.approx(0.1)
        assert second.dt == pytest.approx(0.05)
        assert pipeline.buffered_timestamps == [1.0, 1.05]

    def test_sample_copies_vectors(self, pipeline):
        gyro = np.array([0.1, 0.2, 0.3])
        pipeline.on_imu(0.0, ACC, gyro)
        sample = pipeline.on_imu(0.01, ACC, gyro)

        gyro[0] = 99.0

        np.testing.assert_array_equal(sample.angular_velocity, [0.1, 0.2, 0.3])

    def test_out_of_order_reading(self, pipeline):
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)

        with pytest.raises(AssertionError, match="Out-of-order"):
            pipeline.on_imu(0.95, ACC, GYRO)

    def test_reset_rearms_seed(self, pipeline):
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)

        pipeline.reset()

        assert pipeline.num_buffered_samples == 0
        assert pipeline.on_imu(5.0, ACC, GYRO) is None
        assert pipeline.on_imu(5.01, ACC, GYRO).dt == pytest.approx(0.01)

    def test_reset_during_imu_stream(self, pipeline):
        errors = []
        stop = threading.Event()

        def produce():
            try:
                for i in range(2000):
                    pipeline.on_imu(i * 0.001, ACC, GYRO)
            except AssertionError as e:
                errors.append(e)
            finally:
                stop.set()

        thread = threading.Thread(target=produce)
        thread.start()
        while not stop.is_set():
            pipeline.reset()
        thread.join()

        assert errors == []
        # Everything queued after the last reset is one contiguous run
        timestamps = pipeline.buffered_timestamps
        np.testing.assert_allclose(np.diff(timestamps), 0.001, atol=1e-9)

    def test_buffer_cap(self, params, tracker):
        pipeline = SyncPipeline(params, tracker, max_buffered_samples=3, verbose=False)
        pipeline.on_imu(0.0, ACC, GYRO)
        for i in range(1, 6):
            pipeline.on_imu(i * 0.01, ACC, GYRO)

        assert pipeline.buffered_timestamps == pytest.approx([0.03, 0.04, 0.05])


class TestImagePath:
    """Test suite for the image-arrived path."""

    def test_forwards_readings_up_to_image(self, pipeline, tracker):
        pipeline.on_imu(0.9, ACC, GYRO)
        for t in (1.0, 1.1, 1.2, 1.3):
            pipeline.on_imu(t, ACC, GYRO)

        result = pipeline.on_image(1.15, mono_image())

        assert result.num_imu_readings == 2
        assert len(tracker.rotation_readings) == 2
        assert pipeline.buffered_timestamps == [1.2, 1.3]
        assert tracker.frames[0][1] == 1.15

    def test_gyro_readings_precede_frame(self, pipeline, tracker):
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)
        pipeline.on_imu(1.1, ACC, GYRO)

        pipeline.on_image(1.15, mono_image())

        assert [kind for kind, _ in tracker.events] == ["gyro", "gyro", "frame"]

    def test_image_before_any_reading(self, pipeline, tracker):
        result = pipeline.on_image(0.5, mono_image())

        assert result.num_imu_readings == 0
        assert tracker.rotation_readings == []
        assert len(tracker.frames) == 1

    def test_gyro_rotated_into_camera_frame(self, tracker, rot_z):
        T = np.eye(4)
        T[:3, :3] = rot_z(np.pi / 2)
        params = derive_parameters(RawCalibration(intrinsics=(300, 300, 320, 240), T_cam_imu=T))
        pipeline = SyncPipeline(params, tracker, verbose=False)
        pipeline.on_imu(0.0, ACC, GYRO)
        pipeline.on_imu(0.01, ACC, np.array([1.0, 0.0, 0.0]))

        pipeline.on_image(0.02, mono_image())

        np.testing.assert_allclose(tracker.rotation_readings[0], [0.0, -1.0, 0.0], atol=1e-12)

    def test_decoded_image_reaches_tracker(self, pipeline, tracker):
        pipeline.on_image(0.1, mono_image(42))

        image, _ = tracker.frames[0]
        assert image.dtype == np.uint8
        assert image.shape == (48, 64)
        assert np.all(image == 42)

    def test_feature_counts(self, pipeline, tracker):
        tracker.tracked = {1: np.array([1.0, 2.0]), 2: np.array([3.0, 4.0])}
        tracker.new = {3: np.array([5.0, 6.0])}

        result = pipeline.on_image(0.1, mono_image())

        assert (result.num_tracked, result.num_new) == (2, 1)
        assert result.frame_id == 0
        assert pipeline.num_frames == 1

    def test_decode_failure_drops_frame(self, pipeline, tracker):
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)

        assert pipeline.on_image(1.15, broken_image()) is None

        assert tracker.events == []
        assert pipeline.buffered_timestamps == [1.0]
        assert pipeline.num_dropped_frames == 1
        assert pipeline.num_frames == 0

    @pytest.mark.parametrize(
        "raw",
        [
            RawImage(data="not an image", encoding="png"),
            RawImage(data=b"\x00", encoding=None),
            RawImage(data=[[1, 2], [3]], encoding="mono8"),
        ],
    )
    def test_malformed_image_is_absorbed(self, pipeline, tracker, raw):
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)

        assert pipeline.on_image(1.0, raw) is None

        assert tracker.events == []
        assert pipeline.buffered_timestamps == [1.0]
        assert pipeline.num_dropped_frames == 1

    def test_readings_after_decode_failure_go_to_next_frame(self, pipeline, tracker):
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)
        pipeline.on_image(1.05, broken_image())
        pipeline.on_imu(1.1, ACC, GYRO)

        result = pipeline.on_image(1.15, mono_image())

        assert result.num_imu_readings == 2

    def test_drain_on_decode_failure(self, params, tracker):
        pipeline = SyncPipeline(params, tracker, drain_on_decode_failure=True, verbose=False)
        pipeline.on_imu(0.9, ACC, GYRO)
        pipeline.on_imu(1.0, ACC, GYRO)
        pipeline.on_imu(1.2, ACC, GYRO)

        pipeline.on_image(1.1, broken_image())

        assert pipeline.buffered_timestamps == [1.2]
        assert tracker.rotation_readings == []

    def test_log_lines(self, params, tracker, capsys):
        pipeline = SyncPipeline(params, tracker)
        tracker.new = {0: np.array([1.0, 1.0])}
        pipeline.on_imu(0.0, ACC, GYRO)
        pipeline.on_imu(0.01, ACC, GYRO)

        pipeline.on_image(0.02, mono_image())
        pipeline.on_image(0.03, broken_image())

        out = capsys.readouterr().out
        assert "[Dispatcher] 1 imu readings in queue" in out
        assert "[Dispatcher] Feature counts [tracked: 0,  new: 1]" in out
        assert "[Dispatcher] Dropping image at t=0.030000" in out


class TestDiagnostics:
    """Test suite for diagnostic publication through the pipeline."""

    def test_publishes_with_subscriber(self, params, tracker, make_sink):
        sink = make_sink(subscribers=1)
        pipeline = SyncPipeline(params, tracker, diagnostic_sink=sink, verbose=False)

        result = pipeline.on_image(0.5, mono_image())

        assert result.published_diagnostics
        assert len(sink.published) == 1
        assert sink.published[0][1] == 0.5

    def test_skips_without_subscribers(self, params, tracker, make_sink):
        sink = make_sink(subscribers=0)
        pipeline = SyncPipeline(params, tracker, diagnostic_sink=sink, verbose=False)

        result = pipeline.on_image(0.5, mono_image())

        assert not result.published_diagnostics
        assert sink.published == []
        assert tracker.visualization_calls == 0

    def test_no_sink(self, pipeline, tracker):
        result = pipeline.on_image(0.5, mono_image())

        assert not result.published_diagnostics
        assert tracker.visualization_calls == 0


class TestSetup:
    """Test suite for tracker and estimator setup."""

    def test_tracker_configured_on_construction(self, pipeline, tracker):
        assert tracker.grid_size == (8, 8)
        assert tracker.ransac_threshold == 0.000002

    def test_setup_estimator(self, params, tracker, estimator):
        pipeline = SyncPipeline(params, tracker, estimator=estimator, verbose=False)

        pipeline.setup_estimator()

        camera, noise, filter_params, state = estimator.calls[0]
        assert camera is params.camera
        assert noise is params.noise
        assert filter_params is params.filter
        assert isinstance(state, InitialImuState)
        np.testing.assert_array_equal(state.gravity, [0.0, 0.0, -9.81])

    def test_setup_estimator_custom_state(self, params, tracker, estimator):
        pipeline = SyncPipeline(params, tracker, estimator=estimator, verbose=False)
        state = InitialImuState()

        pipeline.setup_estimator(state)

        assert estimator.calls[0][3] is state

    def test_setup_estimator_without_estimator(self, pipeline):
        with pytest.raises(RuntimeError, match="without an estimator"):
            pipeline.setup_estimator()
