import re
import logging
from uuid import UUID
from workshop_capture.core.config.settings import settings
from workshop_capture.core.errors import TranscriptionUnavailable
from workshop_capture.features.storage.domain.interfaces import IAudioStore
from ..domain.interfaces import ITranscriber, ITranscriptionService

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"[ \t]+")
_BLANK_LINES = re.compile(r"\n{3,}")


def clean_transcript(text: str) -> str:
    """
    Normalises ASR output into note-ready text:
    collapses runs of spaces, trims every line, keeps paragraph breaks.
    """
    if not text:
        return ""
    lines = [_WHITESPACE.sub(" ", line).strip() for line in text.replace("\r\n", "\n").split("\n")]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


class TranscriptionService(ITranscriptionService):
    """
    Resolves a stored segment to its file and runs it through the ASR engine.
    """

    def __init__(self, transcriber: ITranscriber, storage: IAudioStore, model_size: str = None):
        self.transcriber = transcriber
        self.storage = storage
        self.model_size = model_size or settings.WHISPER_MODEL_NAME

    def transcribe(self, segment_ref_id: UUID) -> str:
        try:
            audio_path = self.storage.resolve(segment_ref_id)
            result = self.transcriber.transcribe(str(audio_path), self.model_size)
        except Exception as e:
            raise TranscriptionUnavailable(f"Could not transcribe {segment_ref_id}: {e}") from e

        cleaned = clean_transcript(result.full_text)
        if not cleaned:
            logger.info(f"No speech detected in {segment_ref_id}")
        return cleaned
