# File: workshop_capture/features/storage/domain/models.py
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

@dataclass(frozen=True)
class SegmentRef:
    """
    Stable handle to one stored audio segment.
    `id` is the logical record; `path` is where the bytes can be read back.
    """
    id: UUID
    path: Path

@dataclass(frozen=True)
class StoreRequest:
    """Everything the storage layer needs to persist one segment's audio."""
    session_ref: UUID
    audio: bytes
    duration_seconds: float
    segment_index: int
    extension: str = ".wav"

    def __post_init__(self):
        if not self.audio:
            raise ValueError(f"Segment {self.segment_index} has no audio to store.")
        if self.segment_index < 0:
            raise ValueError("Segment index cannot be negative.")
