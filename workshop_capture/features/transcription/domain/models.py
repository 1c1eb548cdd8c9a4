# File: workshop_capture/features/transcription/domain/models.py
from dataclasses import dataclass, field
from typing import Any, Dict

@dataclass(frozen=True)
class TranscriptionResult:
    """
    The raw output of the ASR engine for one audio segment.
    """
    source_file: str
    language: str
    model_used: str
    full_text: str
    processing_meta: Dict[str, Any] = field(default_factory=dict)
