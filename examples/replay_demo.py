#!/usr/bin/env python3
"""Demo script replaying a EuRoC sequence through the sync pipeline.

Loads cam0/imu0 calibration from the dataset, derives the filter
parameters, and replays IMU and camera streams through the pipeline with
the ORB reference tracker. Track images are shown in Rerun.

Usage:
    uv run python examples/replay_demo.py
    uv run python examples/replay_demo.py --threaded --max-frames 200
    uv run python examples/replay_demo.py --set feature_covariance=5.0
"""

import argparse

import yaml

from vio_sync import (
    EurocReplay,
    ImuCsvReader,
    MonoImageReader,
    OrbTrackHandler,
    RawCalibration,
    RerunImageSink,
    SyncPipeline,
    derive_parameters,
    load_euroc_camchain,
)


def parse_overrides(items: list[str]) -> dict:
    """Parse KEY=VALUE pairs, reading each value as YAML."""
    overrides = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise SystemExit(f"Invalid override {item!r}, expected KEY=VALUE")
        overrides[key] = yaml.safe_load(value)
    return overrides


def main() -> None:
    """Run the replay demo."""
    parser = argparse.ArgumentParser(description="Replay a EuRoC sequence")
    parser.add_argument(
        "--dataset", default="data/euroc/MH_01_easy/mav0", help="Path to mav0 directory"
    )
    parser.add_argument("--max-frames", type=int, default=None)
    parser.add_argument("--threaded", action="store_true", help="One thread per stream")
    parser.add_argument("--no-viewer", action="store_true", help="Disable Rerun output")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a calibration or tuning key, e.g. --set max_cam_states=30",
    )
    args = parser.parse_args()

    print("Loading calibration...")
    print("=" * 80)
    store = load_euroc_camchain(args.dataset).with_overrides(parse_overrides(args.set))
    params = derive_parameters(RawCalibration.from_store(store))
    for line in params.describe():
        print(line)
    print(f"Pixel noise (u, v): {params.noise.pixel_noise_u:.3e}, {params.noise.pixel_noise_v:.3e}")
    print(f"q_CI (w, x, y, z):  {params.camera.q_CI}")
    print()

    tracker = OrbTrackHandler(params.tracker.camera_matrix)
    sink = None if args.no_viewer else RerunImageSink(app_name="vio-sync-replay")
    pipeline = SyncPipeline(
        params=params,
        tracker=tracker,
        diagnostic_sink=sink,
        verbose=False,
    )

    imu_reader = ImuCsvReader(args.dataset)
    image_reader = MonoImageReader(args.dataset)
    print(f"Loaded {len(imu_reader)} IMU readings and {len(image_reader)} images")
    print()

    replay = EurocReplay(pipeline, imu_reader, image_reader)
    stats = replay.run(max_frames=args.max_frames, threaded=args.threaded)

    if sink is not None:
        for result in stats.results:
            sink.log_readings_count(result.timestamp, result.num_imu_readings)

    print()
    print(f"{'Frame':>6} {'IMU#':>5} {'Tracked':>8} {'New':>6} {'Time (ms)':>10}")
    print("-" * 40)
    for result in stats.results[:: max(1, len(stats.results) // 20)]:
        print(
            f"{result.frame_id:>6} {result.num_imu_readings:>5} "
            f"{result.num_tracked:>8} {result.num_new:>6} "
            f"{result.timing.total_ms:>10.2f}"
        )

    print()
    print("=" * 80)
    print(f"Frames processed:   {stats.num_frames}")
    print(f"Frames dropped:     {stats.num_dropped_frames}")
    print(f"IMU readings sent:  {stats.num_forwarded_readings}")
    print(f"IMU still queued:   {pipeline.num_buffered_samples}")
    if stats.num_frames > 0:
        avg_ms = sum(r.timing.total_ms for r in stats.results) / stats.num_frames
        print(f"Avg frame time:     {avg_ms:.2f} ms")


if __name__ == "__main__":
    main()
