# File: workshop_capture/features/segment_pipeline/service/worker.py
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional

from workshop_capture.core.common.enums import PipelineStatus
from workshop_capture.core.config.settings import settings
from workshop_capture.core.errors import (
    ChecklistUnavailable, ExtractionFailed, InvalidStateTransition, StageTimeout,
    StoreFailed, TranscriptionFailed
)
from workshop_capture.core.events.types import SegmentStatusChanged
from workshop_capture.features.answers.domain.models import Answer
from workshop_capture.features.capture.domain.models import Segment
from workshop_capture.features.checklist.domain.models import ChecklistDefinition
from workshop_capture.features.storage.domain.models import StoreRequest
from ..domain.models import PipelineServices

logger = logging.getLogger(__name__)

STAGES = (PipelineStatus.STORING, PipelineStatus.TRANSCRIBING, PipelineStatus.EXTRACTING)

_STAGE_ERRORS = {
    PipelineStatus.STORING: StoreFailed,
    PipelineStatus.TRANSCRIBING: TranscriptionFailed,
    PipelineStatus.EXTRACTING: ExtractionFailed,
}


class SegmentPipelineWorker:
    """
    Drives one Segment through store -> transcribe -> extract.

    State machine:
        queued -> storing -> transcribing -> extracting -> done
        any stage -> failed (failed_stage remembers where)
        failed -> <failed_stage> on retry()

    Stage failures are recorded on the Segment and never raised out of run().
    Every transition is persisted and published on the bus.
    """

    def __init__(self,
                 segment: Segment,
                 services: PipelineServices,
                 resolve_answer: Callable[[], Answer],
                 resolve_definition: Callable[[], Optional[ChecklistDefinition]],
                 stage_timeout: Optional[float] = None):
        self.segment = segment
        self.services = services
        self.resolve_answer = resolve_answer
        self.resolve_definition = resolve_definition
        self.stage_timeout = stage_timeout if stage_timeout is not None else settings.stage_timeout
        self._answer_id = None

        self._stage_handlers = {
            PipelineStatus.STORING: self._store,
            PipelineStatus.TRANSCRIBING: self._transcribe,
            PipelineStatus.EXTRACTING: self._extract,
        }

    # --- Public API ---

    def run(self) -> Segment:
        if self.segment.pipeline_status != PipelineStatus.QUEUED:
            raise InvalidStateTransition(
                f"Segment {self.segment.index} already ran (status {self.segment.pipeline_status.value})"
            )
        return self._run_from(PipelineStatus.STORING)

    def retry(self) -> Segment:
        """Re-runs the failed stage and every stage after it."""
        if self.segment.pipeline_status != PipelineStatus.FAILED:
            raise InvalidStateTransition(f"Segment {self.segment.index} has not failed; nothing to retry")
        stage = self.segment.failed_stage or PipelineStatus.STORING
        logger.info(f"Retrying segment {self.segment.index} from {stage.value}")
        return self._run_from(stage)

    # --- State machine ---

    def _run_from(self, first: PipelineStatus) -> Segment:
        # Every segment row is linked to its Answer, failed ones included.
        self._answer()
        self.segment.error = None
        self.segment.failed_stage = None

        for stage in STAGES[STAGES.index(first):]:
            self._transition(stage)
            try:
                self._stage_handlers[stage]()
            except Exception as e:
                error = _STAGE_ERRORS[stage](self.segment.index, str(e))
                logger.exception(str(error))
                self.segment.failed_stage = stage
                self._transition(PipelineStatus.FAILED, error=str(error))
                return self.segment

        self._transition(PipelineStatus.DONE)
        return self.segment

    def _transition(self, status: PipelineStatus, error: str = None):
        self.segment.pipeline_status = status
        self.segment.error = error
        self.services.segments.save(self.segment, self._answer_id)

        if status != PipelineStatus.FAILED:
            logger.info(f"Segment {self.segment.index}: {status.value}")

        if self.services.bus:
            self.services.bus.publish(SegmentStatusChanged(
                recording_id=self.segment.recording_id,
                index=self.segment.index,
                status=status,
                error=error
            ))

    def _call(self, stage: PipelineStatus, func, *args):
        """
        Runs one external service call under the stage timeout.
        A timed-out call is abandoned, not cancelled; its result is discarded.
        """
        if not self.stage_timeout:
            return func(*args)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"seg{self.segment.index}-{stage.value}")
        try:
            future = executor.submit(func, *args)
            return future.result(timeout=self.stage_timeout)
        except FutureTimeout:
            raise StageTimeout(stage.value, self.stage_timeout)
        finally:
            executor.shutdown(wait=False)

    def _answer(self) -> Answer:
        answer = self.resolve_answer()
        self._answer_id = answer.id
        return answer

    # --- Stages ---

    def _store(self):
        request = StoreRequest(
            session_ref=self.segment.recording_id,
            audio=self.segment.audio,
            duration_seconds=self.segment.duration_seconds,
            segment_index=self.segment.index,
            extension=self.segment.extension
        )
        ref = self._call(PipelineStatus.STORING, self.services.storage.store, request)
        self.segment.raw_audio_ref = ref.id

    def _transcribe(self):
        text = self._call(PipelineStatus.TRANSCRIBING, self.services.transcription.transcribe, self.segment.raw_audio_ref)
        answer = self._answer()

        self.segment.transcript_text = text
        self.services.segments.save(self.segment, answer.id)

        if text:
            self.services.answers.append_transcript(answer.id, self.segment.index, text)

    def _extract(self):
        definition = self.resolve_definition()
        if definition is None:
            raise ChecklistUnavailable("No checklist defined for this question")

        # Read the Answer now: its text includes every segment transcribed up to this moment.
        answer = self.services.answers.get(self._answer().id)
        result = self._call(
            PipelineStatus.EXTRACTING,
            self.services.extraction.extract,
            answer.cumulative_text,
            definition
        )
        self.services.aggregator.publish(answer.id, definition, result, self.segment.index)
