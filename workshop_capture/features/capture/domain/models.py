# File: workshop_capture/features/capture/domain/models.py
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID
from workshop_capture.core.common.enums import PipelineStatus

@dataclass
class Segment:
    """
    One bounded slice of the recording.
    Created by the Segmenter; afterwards mutated only by its owning pipeline worker.
    """
    recording_id: UUID
    index: int
    duration_seconds: float
    audio: bytes = field(default=b"", repr=False)
    extension: str = ".wav"

    raw_audio_ref: Optional[UUID] = None
    transcript_text: Optional[str] = None
    pipeline_status: PipelineStatus = PipelineStatus.QUEUED
    error: Optional[str] = None
    # The stage a manual retry resumes from
    failed_stage: Optional[PipelineStatus] = None
