#!/usr/bin/env python3
"""Demo script replaying a stereo + IMU sequence.

Prints one line per synchronized packet: frame index, inter-frame interval,
IMU sample count and mean angular velocity.

Usage:
    uv run python examples/replay_demo.py
"""

import logging

import numpy as np

from vioreplay import KittiDataProvider, ReplayConfig, SynchronizedPacket


def main() -> None:
    """Run the replay demo."""
    # Configuration
    dataset_path = "data/kitti/2011_09_26/2011_09_26_drive_0005_sync"
    config = ReplayConfig.kitti_raw(initial_frame_skip=10)
    max_frames = None  # Set to int to stop early

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    provider = KittiDataProvider(dataset_path, config)
    imu_params = provider.get_imu_parameters()
    print(f"IMU rate: {imu_params.rate_hz:.0f} Hz, gyro noise: {imu_params.gyro_noise_density:.2e}")
    print()

    # Column headers
    print(f"{'Frame':>6} {'dt [ms]':>8} {'IMU#':>5} | {'Mean gyro [rad/s]':^30}")
    print("-" * 56)

    imu_counts: list[int] = []

    def consume(packet: SynchronizedPacket) -> bool:
        dt_ms = (packet.timestamp_ns - packet.previous_timestamp_ns) / 1e6
        imu_counts.append(len(packet.imu_window))

        if packet.imu_window:
            w = packet.gyroscope.mean(axis=0)
            gyro = f"[{w[0]:+.4f}, {w[1]:+.4f}, {w[2]:+.4f}]"
        else:
            gyro = "-"
        print(f"{packet.frame_index:>6} {dt_ms:>8.1f} {len(packet.imu_window):>5} | {gyro:^30}")

        return max_frames is None or len(imu_counts) < max_frames

    ok = provider.run_replay(consume)

    print()
    print(f"Replayed {len(imu_counts)} frames ({'complete' if ok else 'stopped'})")
    if imu_counts:
        print(f"IMU samples per frame: mean {np.mean(imu_counts):.1f}, min {min(imu_counts)}")
    if provider.last_error is not None:
        print(f"Error: {provider.last_error}")


if __name__ == "__main__":
    main()
