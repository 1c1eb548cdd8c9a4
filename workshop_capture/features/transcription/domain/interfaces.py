from abc import ABC, abstractmethod
from uuid import UUID
from .models import TranscriptionResult

class ITranscriber(ABC):
    """
    Contract for any ASR (Automatic Speech Recognition) engine.
    Local Whisper today; an API-based engine can replace it without touching the pipeline.
    """
    @abstractmethod
    def transcribe(self, audio_path: str, model_size: str) -> TranscriptionResult:
        """
        Transcribes the audio file at the given path.

        Args:
            audio_path: Absolute path to the audio file.
            model_size: 'tiny', 'base', 'small', 'medium', 'large-v3'.

        Returns:
            Structured TranscriptionResult.
        """
        pass

class ITranscriptionService(ABC):
    """
    The Transcription Service as seen by the segment pipeline: stored ref in, cleaned text out.
    """
    @abstractmethod
    def transcribe(self, segment_ref_id: UUID) -> str:
        """Raises TranscriptionUnavailable on any engine or lookup failure."""
        pass
