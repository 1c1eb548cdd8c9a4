# File: workshop_capture/core/errors.py

from typing import Optional


class WorkshopCaptureError(Exception):
    """Root of every error raised by the capture pipeline."""


# --- Capture ---

class CaptureError(WorkshopCaptureError):
    pass

class DeviceUnavailable(CaptureError):
    """Microphone permission denied or no input device. The facilitator may retry."""


# --- External services ---

class TranscriptionUnavailable(WorkshopCaptureError):
    pass

class ExtractionUnavailable(WorkshopCaptureError):
    pass


# --- Segment scoped (recorded on the Segment, never raised out of a worker) ---

class SegmentStageError(WorkshopCaptureError):
    stage: Optional[str] = None

    def __init__(self, segment_index: int, message: str):
        super().__init__(f"Segment {segment_index} {self.stage} failed: {message}")
        self.segment_index = segment_index
        self.reason = message

class StoreFailed(SegmentStageError):
    stage = "storing"

class TranscriptionFailed(SegmentStageError):
    stage = "transcribing"

class ExtractionFailed(SegmentStageError):
    stage = "extracting"

class StageTimeout(WorkshopCaptureError):
    def __init__(self, stage: str, seconds: float):
        super().__init__(f"Stage '{stage}' exceeded {seconds:.0f}s")
        self.stage = stage
        self.seconds = seconds


# --- Checklist ---

class MergeConflict(WorkshopCaptureError):
    """Snapshot publish lost a compare-and-swap race on the version pointer."""

    def __init__(self, answer_id, expected_version: Optional[int]):
        super().__init__(f"Answer {answer_id}: latest snapshot is no longer version {expected_version}")
        self.answer_id = answer_id
        self.expected_version = expected_version

class ChecklistUnavailable(WorkshopCaptureError):
    pass


# --- Controller ---

class InvalidStateTransition(WorkshopCaptureError):
    pass

class NavigationBlocked(WorkshopCaptureError):
    pass

class AnswerNotFound(WorkshopCaptureError):
    pass
