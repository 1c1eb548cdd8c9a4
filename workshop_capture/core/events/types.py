# File: workshop_capture/core/events/types.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import UUID

from workshop_capture.core.common.enums import ControllerState, PipelineStatus


def utc_now():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """Base class. Subscribers register against a concrete subclass (or Event for everything)."""
    occurred_at: datetime = field(default_factory=utc_now, init=False, compare=False)


@dataclass(frozen=True)
class SegmentReady(Event):
    recording_id: UUID
    index: int
    duration_seconds: float


@dataclass(frozen=True)
class SegmentationFinished(Event):
    recording_id: UUID
    segment_count: int


@dataclass(frozen=True)
class SegmentStatusChanged(Event):
    recording_id: UUID
    index: int
    status: PipelineStatus
    error: Optional[str] = None


@dataclass(frozen=True)
class SnapshotPublished(Event):
    answer_id: UUID
    version: int
    source_segment_index: Optional[int]
    can_proceed: bool


@dataclass(frozen=True)
class ControllerStateChanged(Event):
    question_id: str
    previous: ControllerState
    current: ControllerState


@dataclass(frozen=True)
class AllSegmentsResolved(Event):
    """Draining finished: every segment of the recording reached DONE or FAILED."""
    recording_id: UUID
    succeeded: Tuple[int, ...]
    failed: Tuple[int, ...]
