"""Replay recorded IMU and camera streams through a pipeline."""

from __future__ import annotations

import heapq
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

from .image_reader import ImageEvent, MonoImageReader
from .imu_reader import ImuCsvReader, ImuEvent

if TYPE_CHECKING:
    from ..frontend import FrameResult
    from ..pipeline import SyncPipeline


@dataclass
class ReplayStats:
    """Summary of a replay run."""

    num_imu_events: int = 0
    num_images: int = 0
    num_frames: int = 0
    num_dropped_frames: int = 0
    num_forwarded_readings: int = 0
    elapsed_s: float = 0.0
    results: list[FrameResult] = field(default_factory=list)


class EurocReplay:
    """Feeds EuRoC IMU and camera data to a SyncPipeline.

    In sequential mode the two streams are merged by timestamp and delivered
    from one thread (IMU first on equal timestamps). In threaded mode each
    stream runs on its own thread, as with a live transport; an image is
    delivered only once the IMU thread has caught up to its timestamp.
    """

    def __init__(
        self,
        pipeline: SyncPipeline,
        imu_reader: ImuCsvReader,
        image_reader: MonoImageReader,
    ) -> None:
        self._pipeline = pipeline
        self._imu_reader = imu_reader
        self._image_reader = image_reader

    def _image_events(self, max_frames: int | None) -> Iterator[ImageEvent]:
        for i, event in enumerate(self._image_reader):
            if max_frames is not None and i >= max_frames:
                return
            yield event

    def run(self, max_frames: int | None = None, threaded: bool = False) -> ReplayStats:
        """Replay the recording.

        Args:
            max_frames: Stop after this many images (None = all)
            threaded: If True, deliver the two streams from separate threads

        Returns:
            ReplayStats for the run
        """
        start_time = time.perf_counter()
        if threaded:
            stats = self._run_threaded(max_frames)
        else:
            stats = self._run_sequential(max_frames)
        stats.elapsed_s = time.perf_counter() - start_time

        stats.num_frames = len(stats.results)
        stats.num_dropped_frames = stats.num_images - stats.num_frames
        stats.num_forwarded_readings = sum(r.num_imu_readings for r in stats.results)

        print(
            f"[Replay] {stats.num_frames} frames ({stats.num_dropped_frames} dropped), "
            f"{stats.num_imu_events} imu readings in {stats.elapsed_s:.2f}s"
        )
        return stats

    def _run_sequential(self, max_frames: int | None) -> ReplayStats:
        stats = ReplayStats()

        # Sort key (timestamp, stream) puts IMU (0) before images (1) on ties
        imu_stream = ((e.timestamp, 0, i, e) for i, e in enumerate(self._imu_reader))
        image_stream = (
            (e.timestamp, 1, i, e) for i, e in enumerate(self._image_events(max_frames))
        )

        for _, kind, _, event in heapq.merge(imu_stream, image_stream):
            if max_frames is not None and stats.num_images >= max_frames:
                break

            if kind == 0:
                self._deliver_imu(event)
                stats.num_imu_events += 1
            else:
                stats.num_images += 1
                result = self._pipeline.on_image(event.timestamp, event.raw)
                if result is not None:
                    stats.results.append(result)

        return stats

    def _deliver_imu(self, event: ImuEvent) -> None:
        self._pipeline.on_imu(
            event.timestamp, event.linear_acceleration, event.angular_velocity
        )

    def _run_threaded(self, max_frames: int | None) -> ReplayStats:
        stats = ReplayStats()
        progress = threading.Condition()
        state = {"imu_time": float("-inf"), "imu_done": False}
        errors: list[BaseException] = []

        def imu_worker() -> None:
            try:
                for event in self._imu_reader:
                    self._deliver_imu(event)
                    with progress:
                        state["imu_time"] = event.timestamp
                        stats.num_imu_events += 1
                        progress.notify_all()
            except BaseException as e:
                errors.append(e)
            finally:
                with progress:
                    state["imu_done"] = True
                    progress.notify_all()

        def image_worker() -> None:
            try:
                for event in self._image_events(max_frames):
                    with progress:
                        progress.wait_for(
                            lambda: state["imu_done"] or state["imu_time"] >= event.timestamp
                        )
                    stats.num_images += 1
                    result = self._pipeline.on_image(event.timestamp, event.raw)
                    if result is not None:
                        stats.results.append(result)
            except BaseException as e:
                errors.append(e)

        threads = [
            threading.Thread(target=imu_worker, name="imu-replay", daemon=True),
            threading.Thread(target=image_worker, name="image-replay", daemon=True),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        if errors:
            raise errors[0]
        return stats
