# File: workshop_capture/features/segment_pipeline/domain/models.py
from dataclasses import dataclass
from typing import Optional
from workshop_capture.core.events.bus import EventBus
from workshop_capture.features.answers.domain.interfaces import IAnswerRepository
from workshop_capture.features.checklist.service.aggregator import ChecklistAggregator
from workshop_capture.features.extraction.domain.interfaces import IExtractionService
from workshop_capture.features.storage.domain.interfaces import IAudioStore
from workshop_capture.features.transcription.domain.interfaces import ITranscriptionService
from .interfaces import ISegmentRepository

@dataclass
class PipelineServices:
    """The collaborators every worker of a session shares."""
    storage: IAudioStore
    transcription: ITranscriptionService
    extraction: IExtractionService
    aggregator: ChecklistAggregator
    answers: IAnswerRepository
    segments: ISegmentRepository
    bus: Optional[EventBus] = None
