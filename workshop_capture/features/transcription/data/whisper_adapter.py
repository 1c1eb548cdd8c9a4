# File: workshop_capture/features/transcription/data/whisper_adapter.py
import whisper
import logging
from workshop_capture.core.config.settings import settings
from workshop_capture.core.model_lifecycle.orchestrator import ModelOrchestrator, ModelType
from ..domain.interfaces import ITranscriber
from ..domain.models import TranscriptionResult

logger = logging.getLogger(__name__)

class WhisperAdapter(ITranscriber):
    def __init__(self, language: str = "en"):
        self.orchestrator = ModelOrchestrator()
        self.device = settings.WHISPER_DEVICE
        self.language = language

    def transcribe(self, audio_path: str, model_size: str) -> TranscriptionResult:
        logger.info(f"Requesting Whisper ({model_size}) for {audio_path}...")

        def loader():
            logger.debug(f"Loading Whisper {model_size} onto {self.device}...")
            return whisper.load_model(model_size, device=self.device)

        model = self.orchestrator.request_model(ModelType.WHISPER, model_size, loader)
        use_fp16 = (self.device == "cuda")

        result_raw = model.transcribe(
            audio_path,
            fp16=use_fp16,
            language=self.language,
            # Each segment is transcribed on its own; conditioning on text we never
            # fed in only invites repetition loops on silent tails.
            condition_on_previous_text=False
        )

        segments = result_raw.get("segments", [])
        no_speech = [s.get("no_speech_prob", 0.0) for s in segments]

        return TranscriptionResult(
            source_file=audio_path,
            language=result_raw.get("language", self.language),
            model_used=model_size,
            full_text=result_raw.get("text", "").strip(),
            processing_meta={
                "device": self.device,
                "segment_count": len(segments),
                "max_no_speech_prob": max(no_speech) if no_speech else None
            }
        )
