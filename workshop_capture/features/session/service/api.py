# File: workshop_capture/features/session/service/api.py
import logging
from workshop_capture.core.config.settings import settings
from workshop_capture.core.events.bus import EventBus
from workshop_capture.features.answers.data.repository import SqlAnswerRepo
from workshop_capture.features.answers.domain.models import Respondent
from workshop_capture.features.checklist.data.repository import SqlChecklistStore, SqlDefinitionRepo
from workshop_capture.features.checklist.domain.models import ChecklistDefinition, QuestionContext
from workshop_capture.features.checklist.service.aggregator import ChecklistAggregator
from workshop_capture.features.checklist.service.definitions import ChecklistDefinitionService
from workshop_capture.features.segment_pipeline.data.repository import SqlSegmentRepo
from workshop_capture.features.segment_pipeline.domain.models import PipelineServices
from workshop_capture.features.storage.service.api import StorageService
from .controller import SessionController

logger = logging.getLogger(__name__)


def _default_llm():
    # Heavy imports (torch, transformers) are deferred until a model is actually needed.
    from workshop_capture.features.extraction.data.qwen_adapter import QwenChecklistAdapter
    return QwenChecklistAdapter(model_path=settings.EXTRACTION_MODEL_PATH)


def create_session_controller(question_id: str,
                              respondent: Respondent = None,
                              bus: EventBus = None,
                              device=None,
                              llm=None) -> SessionController:
    """
    Wires a SessionController against the real adapters:
    microphone -> WAV -> local storage -> Whisper -> Qwen.
    """
    from workshop_capture.features.capture.data.microphone import SoundDeviceMicrophone
    from workshop_capture.features.capture.data.wav_encoder import WavSegmentEncoder
    from workshop_capture.features.extraction.data.tokenizer import TiktokenTokenizer
    from workshop_capture.features.extraction.service.api import ExtractionService
    from workshop_capture.features.transcription.data.whisper_adapter import WhisperAdapter
    from workshop_capture.features.transcription.service.api import TranscriptionService

    settings.ensure_dirs()
    bus = bus or EventBus()
    llm = llm or _default_llm()

    answers = SqlAnswerRepo()
    store = SqlChecklistStore()
    storage = StorageService()

    services = PipelineServices(
        storage=storage,
        transcription=TranscriptionService(WhisperAdapter(), storage),
        extraction=ExtractionService(llm, TiktokenTokenizer()),
        aggregator=ChecklistAggregator(store, answers, bus),
        answers=answers,
        segments=SqlSegmentRepo(),
        bus=bus
    )

    return SessionController(
        question_id=question_id,
        services=services,
        definitions=ChecklistDefinitionService(SqlDefinitionRepo(), generator=llm),
        store=store,
        device=device or SoundDeviceMicrophone(),
        encoder=WavSegmentEncoder(),
        respondent=respondent
    )


def generate_checklist(context: QuestionContext, force: bool = False, generator=None) -> ChecklistDefinition:
    """
    Standalone API: returns the question's checklist, generating it on first use.
    `force=True` always generates a new version.
    """
    service = ChecklistDefinitionService(SqlDefinitionRepo(), generator=generator or _default_llm())
    definition = service.get_or_generate(context, force=force)
    logger.info(f"Checklist for {context.question_id}: v{definition.version}, {len(definition.entries)} entries")
    return definition
