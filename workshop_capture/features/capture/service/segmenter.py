# File: workshop_capture/features/capture/service/segmenter.py
import logging
import uuid
from threading import Lock
from typing import Callable, List, Optional
from uuid import UUID

import numpy as np

from workshop_capture.core.config.settings import settings
from workshop_capture.core.errors import DeviceUnavailable, InvalidStateTransition
from ..domain.interfaces import ICaptureDevice, ISegmentEncoder
from ..domain.models import Segment

logger = logging.getLogger(__name__)


class Segmenter:
    """
    Cuts the continuous capture stream into fixed-length Segments while the device stays open.

    Time is measured in captured frames, not wall clock, so every boundary falls
    exactly on `target_segment_seconds`. A block straddling a boundary is split:
    its head closes the current segment and its tail starts the next one.

    `on_segment_ready` runs on the capture thread, in index order, the moment a
    segment is materialised. It must hand the segment off and return.
    """

    def __init__(self,
                 device: ICaptureDevice,
                 encoder: ISegmentEncoder,
                 on_segment_ready: Callable[[Segment], None],
                 on_finished: Optional[Callable[[int], None]] = None,
                 recording_id: Optional[UUID] = None):
        self.device = device
        self.encoder = encoder
        self.on_segment_ready = on_segment_ready
        self.on_finished = on_finished
        self.recording_id = recording_id or uuid.uuid4()

        self._lock = Lock()
        self._started = False
        self._stopped = False
        self._frames_per_segment = 0
        self._buffer: List[np.ndarray] = []
        self._buffered_frames = 0
        self._total_frames = 0
        self._next_index = 0

    # --- Public API ---

    def start(self, target_segment_seconds: int = None) -> None:
        target = target_segment_seconds or settings.SEGMENT_SECONDS
        if self._started:
            raise InvalidStateTransition("Segmenter already started; segment length is fixed for this recording.")
        if not settings.SEGMENT_MIN_SECONDS <= target <= settings.SEGMENT_MAX_SECONDS:
            raise ValueError(
                f"Segment length {target}s outside [{settings.SEGMENT_MIN_SECONDS}, {settings.SEGMENT_MAX_SECONDS}]"
            )

        self.target_segment_seconds = target
        self._frames_per_segment = int(round(target * self.device.sample_rate))
        self._started = True

        try:
            self.device.open(self._on_frames)
        except DeviceUnavailable:
            self._started = False
            raise
        except Exception as e:
            self._started = False
            raise DeviceUnavailable(str(e)) from e

        logger.info(f"Recording {self.recording_id} started ({target}s segments)")

    def stop(self) -> int:
        """
        Closes the device, flushes the final partial segment and signals end of stream.
        Returns the number of segments produced.
        """
        with self._lock:
            if not self._started or self._stopped:
                return self._next_index
            self._stopped = True

        # Outside the lock: closing waits for an in-progress device callback, which takes the lock.
        # A failing close still flushes the tail and signals the end; the error is re-raised after.
        try:
            self.device.close()
        finally:
            count = self._finish()
        return count

    def _finish(self) -> int:
        with self._lock:
            if self._buffered_frames > 0:
                self._cut()
            count = self._next_index

        logger.info(f"Recording {self.recording_id} stopped after {self.elapsed_seconds:.1f}s, {count} segments")
        if self.on_finished:
            self.on_finished(count)
        return count

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    @property
    def elapsed_seconds(self) -> float:
        return self._total_frames / self.device.sample_rate

    @property
    def current_segment_seconds(self) -> float:
        return self._buffered_frames / self.device.sample_rate

    # --- Capture thread ---

    def _on_frames(self, block: np.ndarray) -> None:
        with self._lock:
            # Frames delivered while the device is closing are not part of the recording
            if self._stopped:
                return
            offset = 0
            total = len(block)
            while offset < total:
                room = self._frames_per_segment - self._buffered_frames
                piece = block[offset:offset + room]
                self._buffer.append(piece)
                self._buffered_frames += len(piece)
                self._total_frames += len(piece)
                offset += len(piece)

                if self._buffered_frames >= self._frames_per_segment:
                    self._cut()

    def _cut(self) -> None:
        """Materialises the buffer as the next Segment. Caller holds the lock."""
        frames = np.concatenate(self._buffer)
        duration = len(frames) / self.device.sample_rate

        segment = Segment(
            recording_id=self.recording_id,
            index=self._next_index,
            duration_seconds=duration,
            audio=self.encoder.encode(frames, self.device.sample_rate),
            extension=self.encoder.extension
        )

        self._next_index += 1
        self._buffer = []
        self._buffered_frames = 0

        logger.info(f"Segment {segment.index} ready ({duration:.1f}s)")
        try:
            self.on_segment_ready(segment)
        except Exception:
            # Keep capturing: losing the rest of the recording is worse than one failed hand-off.
            logger.exception(f"Segment {segment.index} hand-off failed")
