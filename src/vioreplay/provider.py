"""Replay of an indexed sequence as synchronized stereo + IMU packets."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from functools import partial
from pathlib import Path

import numpy as np

from .calibration import ImuParams
from .config import ReplayConfig
from .errors import DecodeError, ReplayError
from .io.images import load_image
from .packet import SynchronizedPacket
from .sequence import SequenceIndex, build_sequence_index

logger = logging.getLogger(__name__)

ImageLoader = Callable[[Path], np.ndarray]
PacketCallback = Callable[[SynchronizedPacket], "bool | None"]


class KittiDataProvider:
    """Replays one recorded stereo + IMU sequence, frame by frame.

    Construction parses and cross-checks every file of the sequence and fails
    fast if they disagree. Replay then walks the frames in time order and
    hands each SynchronizedPacket to a callback, synchronously: the next
    frame is loaded only after the callback returns.

    Example:
        >>> provider = KittiDataProvider("data/kitti/2011_09_26_drive_0005_sync")
        >>> def consume(packet):
        ...     print(f"Frame {packet.frame_index}: {len(packet.imu_window)} IMU samples")
        >>> provider.run_replay(consume)
        True
    """

    def __init__(
        self,
        dataset_path: str | Path,
        config: ReplayConfig | None = None,
        image_loader: ImageLoader | None = None,
    ) -> None:
        """Index the sequence at dataset_path.

        Args:
            dataset_path: Dataset root
            config: Layout and tunables, defaults to ReplayConfig()
            image_loader: Decodes one image path; defaults to OpenCV. Must raise
                DecodeError on failure.

        Raises:
            ConfigurationError: If the root, a device directory or a required
                file is missing
            ParseError: If a calibration, timestamp or IMU file is malformed
            ConsistencyError: If the parsed files disagree
        """
        self.dataset_path = Path(dataset_path)
        self.config = config or ReplayConfig()

        self._image_loader: ImageLoader = image_loader or partial(
            load_image, grayscale=self.config.grayscale
        )

        self._sequence = build_sequence_index(self.dataset_path, self.config).unwrap()
        self.last_error: ReplayError | None = None

        logger.info("Loaded sequence %s\n%s", self.dataset_path, self._sequence.summary())

    @property
    def sequence(self) -> SequenceIndex:
        """The immutable index built at construction."""
        return self._sequence

    def get_imu_parameters(self) -> ImuParams:
        """Return the IMU noise model of the sequence."""
        return self._sequence.imu_parameters

    def _load_stereo_pair(self, k: int) -> tuple[np.ndarray, np.ndarray]:
        left = self._image_loader(self._sequence.left_image_names[k])
        right = self._image_loader(self._sequence.right_image_names[k])
        return left, right

    def packets(self) -> Iterator[SynchronizedPacket]:
        """Yield one packet per frame from initial_frame to final_frame.

        Every call starts over from initial_frame.

        Raises:
            DecodeError: If an image of the current frame cannot be loaded
        """
        seq = self._sequence
        timestamps = seq.frame_timestamps
        timestamp_last_frame = timestamps[seq.initial_frame - 1]

        for k in range(seq.initial_frame, seq.final_frame + 1):
            left, right = self._load_stereo_pair(k)
            timestamp_frame_k = timestamps[k]

            packet = SynchronizedPacket(
                frame_index=k,
                timestamp_ns=timestamp_frame_k,
                previous_timestamp_ns=timestamp_last_frame,
                left_image=left,
                right_image=right,
                left_image_path=seq.left_image_names[k],
                right_image_path=seq.right_image_names[k],
                imu_window=seq.imu_stream.between(timestamp_last_frame, timestamp_frame_k),
            )
            logger.debug("Frame %d: %r", k, packet)
            yield packet

            timestamp_last_frame = timestamp_frame_k

    def run_replay(self, callback: PacketCallback) -> bool:
        """Deliver every packet to callback, in order.

        The callback may return False (or any other falsy value except None)
        to stop the replay early. Exceptions raised by the callback propagate
        to the caller.

        Args:
            callback: Consumer invoked once per frame

        Returns:
            True if the whole frame range was delivered, False if an image
            failed to decode (see last_error) or the callback stopped replay
        """
        self.last_error = None
        seq = self._sequence
        logger.info(
            "Replaying frames %d..%d of %s", seq.initial_frame, seq.final_frame, self.dataset_path
        )

        packets = self.packets()
        while True:
            # Only loading is guarded; errors raised by the callback propagate
            try:
                packet = next(packets, None)
            except DecodeError as e:
                self.last_error = e
                logger.error("Replay aborted: %s", e)
                return False
            if packet is None:
                break

            result = callback(packet)
            # Any falsy value other than None stops, numpy booleans included
            if result is not None and not result:
                logger.warning("Replay stopped by consumer at frame %d", packet.frame_index)
                packets.close()
                return False

        logger.info("Replay finished: %d frames", seq.number_of_replay_frames)
        return True

    def __len__(self) -> int:
        """Number of packets a full replay delivers."""
        return self._sequence.number_of_replay_frames
