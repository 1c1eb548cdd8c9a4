# File: workshop_capture/features/session/service/controller.py
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from threading import Event as ThreadEvent, Lock, RLock
from typing import Dict, List, Optional, Set
from uuid import UUID

from workshop_capture.core.common.enums import AnswerStatus, ControllerState, PipelineStatus
from workshop_capture.core.config.settings import settings
from workshop_capture.core.errors import (
    AnswerNotFound, ChecklistUnavailable, InvalidStateTransition, NavigationBlocked
)
from workshop_capture.core.events.types import (
    AllSegmentsResolved, ControllerStateChanged, SegmentationFinished, SegmentReady, SnapshotPublished
)
from workshop_capture.features.answers.domain.models import Answer, Respondent
from workshop_capture.features.capture.domain.interfaces import ICaptureDevice, ISegmentEncoder
from workshop_capture.features.capture.domain.models import Segment
from workshop_capture.features.capture.service.segmenter import Segmenter
from workshop_capture.features.checklist.domain.interfaces import IChecklistStore
from workshop_capture.features.checklist.domain.models import ChecklistDefinition, ChecklistSnapshot, QuestionContext
from workshop_capture.features.checklist.service.definitions import ChecklistDefinitionService
from workshop_capture.features.segment_pipeline.domain.models import PipelineServices
from workshop_capture.features.segment_pipeline.service.worker import STAGES, SegmentPipelineWorker

logger = logging.getLogger(__name__)


class SessionController:
    """
    One instance per question view.

        idle --start_recording--> recording --stop_recording--> draining --(all workers resolved)--> idle

    Navigation away from the question is only allowed while idle.
    Workers run on a thread pool; the controller learns about their progress from
    future callbacks and bus events, and never blocks the capture thread.
    """

    def __init__(self,
                 question_id: str,
                 services: PipelineServices,
                 definitions: ChecklistDefinitionService,
                 store: IChecklistStore,
                 device: ICaptureDevice,
                 encoder: ISegmentEncoder,
                 respondent: Respondent = None,
                 max_workers: int = None,
                 stage_timeout: Optional[float] = None):
        self.question_id = question_id
        self.services = services
        self.definitions = definitions
        self.store = store
        self.device = device
        self.encoder = encoder
        self.respondent = respondent
        self.stage_timeout = stage_timeout

        self.state = ControllerState.IDLE
        self.recording_id = None

        self._lock = RLock()
        self._answer_lock = Lock()
        self._snapshot_lock = Lock()
        self._idle = ThreadEvent()
        self._idle.set()

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.PIPELINE_MAX_WORKERS,
            thread_name_prefix=f"segment-{question_id}"
        )
        self._segmenter: Optional[Segmenter] = None
        self._workers: Dict[int, SegmentPipelineWorker] = {}
        self._in_flight: Set[int] = set()
        self._segmentation_finished = False

        self._answer: Optional[Answer] = services.answers.find_by_question(question_id)
        self._snapshot: Optional[ChecklistSnapshot] = (
            store.latest(self._answer.id) if self._answer else None
        )

        if self._answer is not None:
            self._restore_segments(self._answer)

        self._unsubscribe = None
        if services.bus:
            self._unsubscribe = services.bus.subscribe(SnapshotPublished, self._on_snapshot_published)

    # --- Recording ---

    def start_recording(self, target_segment_seconds: int = None) -> None:
        with self._lock:
            if self.state != ControllerState.IDLE:
                raise InvalidStateTransition(f"Cannot start recording while {self.state.value}")
            if self.definitions.current(self.question_id) is None:
                raise ChecklistUnavailable(f"Question {self.question_id} has no checklist yet")

            segmenter = Segmenter(
                device=self.device,
                encoder=self.encoder,
                on_segment_ready=self._on_segment_ready,
                on_finished=self._on_segmentation_finished
            )
            # DeviceUnavailable propagates; the controller stays idle.
            segmenter.start(target_segment_seconds)

            self._segmenter = segmenter
            self.recording_id = segmenter.recording_id
            self._workers = {}
            self._in_flight = set()
            self._segmentation_finished = False
            self._idle.clear()
            self._set_state(ControllerState.RECORDING)

    def stop_recording(self) -> None:
        with self._lock:
            if self.state != ControllerState.RECORDING:
                raise InvalidStateTransition(f"Cannot stop recording while {self.state.value}")
            self._set_state(ControllerState.DRAINING)
            segmenter = self._segmenter

        # Outside the lock: closing the device waits for the capture thread,
        # which may be handing a segment to us.
        try:
            segmenter.stop()
        finally:
            self._check_drained()

    def wait_until_idle(self, timeout: float = None) -> bool:
        return self._idle.wait(timeout)

    @property
    def elapsed_seconds(self) -> float:
        return self._segmenter.elapsed_seconds if self._segmenter else 0.0

    @property
    def current_segment_seconds(self) -> float:
        return self._segmenter.current_segment_seconds if self._segmenter else 0.0

    # --- Analysis ---

    def analyze(self, force: bool = False) -> ChecklistSnapshot:
        """
        Out-of-band extraction over the whole cumulative transcript, merged as if it
        were one more segment without an index.
        Without `force` this is a no-op when a snapshot for the current checklist exists.
        """
        self._require_idle("analyze")

        answer = self.answer
        if answer is None:
            raise AnswerNotFound(f"Question {self.question_id} has no answer to analyze")

        definition = self._current_definition()
        if definition is None:
            raise ChecklistUnavailable(f"Question {self.question_id} has no checklist yet")

        latest = self.store.latest(answer.id)
        if not force and latest is not None and latest.definition_version == definition.version:
            return latest

        logger.info(f"Analyzing full transcript for question {self.question_id} (force={force})")
        result = self.services.extraction.extract(answer.cumulative_text, definition)
        snapshot = self.services.aggregator.publish(answer.id, definition, result, None)
        self._set_snapshot(snapshot)
        return snapshot

    def regenerate_checklist(self, context: QuestionContext) -> Optional[ChecklistSnapshot]:
        """
        Replaces the checklist with a freshly generated version and, when something
        was already said, re-analyzes the transcript against it.
        """
        self._require_idle("regenerate the checklist")
        self.definitions.get_or_generate(context, force=True)
        if self._answer is None:
            return None
        return self.analyze(force=True)

    def retry_segment(self, index: int, recording_id: UUID = None) -> Future:
        """
        Re-runs a failed segment from its failed stage. Returns the worker's future.
        Defaults to the last recording; earlier recordings are looked up by `recording_id`.
        """
        self._require_idle("retry a segment")
        with self._lock:
            if recording_id is None or recording_id == self.recording_id:
                worker = self._workers.get(index)
            else:
                worker = self._load_worker(recording_id, index)
            if worker is None:
                raise InvalidStateTransition(f"Segment {index} is not part of this recording")
            if worker.segment.pipeline_status != PipelineStatus.FAILED:
                raise InvalidStateTransition(f"Segment {index} has not failed")
        return self._executor.submit(worker.retry)

    def save_notes(self, notes: str, respondent: Respondent = None) -> Answer:
        answer = self._resolve_answer()
        with self._answer_lock:
            self._answer = self.services.answers.save_notes(answer.id, notes, respondent)
        return self._answer

    # --- Presentation surface ---

    @property
    def answer(self) -> Optional[Answer]:
        if self._answer is None:
            return None
        return self.services.answers.get(self._answer.id)

    def latest_snapshot(self) -> Optional[ChecklistSnapshot]:
        with self._snapshot_lock:
            return self._snapshot

    def history(self) -> List[ChecklistSnapshot]:
        return self.store.history(self._answer.id) if self._answer else []

    def can_proceed(self) -> bool:
        snapshot = self.latest_snapshot()
        return snapshot is not None and snapshot.can_proceed

    def ensure_can_navigate(self) -> None:
        if self.state != ControllerState.IDLE:
            raise NavigationBlocked(f"Question {self.question_id} is {self.state.value}")

    def segments(self) -> List[Segment]:
        with self._lock:
            return [self._workers[i].segment for i in sorted(self._workers)]

    def segment_statuses(self) -> Dict[int, PipelineStatus]:
        return {s.index: s.pipeline_status for s in self.segments()}

    def segment_summary(self) -> Dict[str, int]:
        statuses = list(self.segment_statuses().values())
        return {
            "total": len(statuses),
            "processing": sum(1 for s in statuses if not s.is_terminal),
            "completed": statuses.count(PipelineStatus.DONE),
            "failed": statuses.count(PipelineStatus.FAILED),
        }

    def close(self) -> None:
        """Releases the worker pool. Dispatched workers still run to completion."""
        if self._unsubscribe:
            self._unsubscribe()
        self._executor.shutdown(wait=False)

    # --- Internals ---

    def _require_idle(self, action: str):
        if self.state != ControllerState.IDLE:
            raise InvalidStateTransition(f"Cannot {action} while {self.state.value}")

    def _set_state(self, new_state: ControllerState):
        previous, self.state = self.state, new_state
        logger.info(f"Question {self.question_id}: {previous.value} -> {new_state.value}")
        if self.services.bus:
            self.services.bus.publish(ControllerStateChanged(self.question_id, previous, new_state))

    def _current_definition(self) -> Optional[ChecklistDefinition]:
        return self.definitions.current(self.question_id)

    def _resolve_answer(self) -> Answer:
        """Creates the Answer on first use. Serialised so concurrent workers share one row."""
        with self._answer_lock:
            if self._answer is None:
                self._answer = self.services.answers.get_or_create(self.question_id, self.respondent)
            if self._answer.status == AnswerStatus.PENDING:
                self.services.answers.set_status(self._answer.id, AnswerStatus.IN_PROGRESS)
                self._answer = self.services.answers.get(self._answer.id)
            return self._answer

    def _set_snapshot(self, snapshot: Optional[ChecklistSnapshot]):
        with self._snapshot_lock:
            if snapshot is None:
                return
            if self._snapshot is None or snapshot.version >= self._snapshot.version:
                self._snapshot = snapshot

    def _on_snapshot_published(self, event: SnapshotPublished):
        if self._answer is None or event.answer_id != self._answer.id:
            return
        self._set_snapshot(self.store.latest(event.answer_id))

    def _make_worker(self, segment: Segment) -> SegmentPipelineWorker:
        return SegmentPipelineWorker(
            segment=segment,
            services=self.services,
            resolve_answer=self._resolve_answer,
            resolve_definition=self._current_definition,
            stage_timeout=self.stage_timeout
        )

    def _restore_segments(self, answer: Answer):
        """
        Rebuilds the status surface of the answer's last recording.
        A segment left mid-pipeline by a previous session is marked failed at that stage so it can be retried.
        """
        stored = self.services.segments.list_for_answer(answer.id)
        if not stored:
            return

        self.recording_id = stored[-1].recording_id
        for segment in stored:
            if segment.recording_id != self.recording_id:
                continue
            if not segment.pipeline_status.is_terminal:
                _mark_interrupted(segment)
                self.services.segments.save(segment, answer.id)
            self._workers[segment.index] = self._make_worker(segment)

        failed = sum(1 for w in self._workers.values() if w.segment.pipeline_status == PipelineStatus.FAILED)
        logger.info(f"Question {self.question_id}: restored {len(self._workers)} segments ({failed} failed)")

    def _load_worker(self, recording_id: UUID, index: int) -> Optional[SegmentPipelineWorker]:
        for segment in self.services.segments.list_for_recording(recording_id):
            if segment.index == index:
                return self._make_worker(segment)
        return None

    def _on_segment_ready(self, segment: Segment):
        """Capture thread: hand the segment to a worker and return immediately."""
        worker = self._make_worker(segment)
        with self._lock:
            self._workers[segment.index] = worker
            self._in_flight.add(segment.index)

        if self.services.bus:
            self.services.bus.publish(SegmentReady(segment.recording_id, segment.index, segment.duration_seconds))

        future = self._executor.submit(worker.run)
        future.add_done_callback(partial(self._on_worker_done, segment.index))

    def _on_segmentation_finished(self, segment_count: int):
        with self._lock:
            self._segmentation_finished = True
        if self.services.bus:
            self.services.bus.publish(SegmentationFinished(self.recording_id, segment_count))

    def _on_worker_done(self, index: int, future: Future):
        error = future.exception()
        if error is not None:
            # Only infrastructure errors (e.g. the database) escape a worker.
            logger.error(f"Segment {index} worker crashed: {error!r}")
            with self._lock:
                segment = self._workers[index].segment
                if not segment.pipeline_status.is_terminal:
                    segment.pipeline_status = PipelineStatus.FAILED
                    segment.error = str(error)

        with self._lock:
            self._in_flight.discard(index)
        self._check_drained()

    def _check_drained(self):
        with self._lock:
            if self.state != ControllerState.DRAINING:
                return
            if not self._segmentation_finished or self._in_flight:
                return

            if self._answer is not None:
                self._set_snapshot(self.store.latest(self._answer.id))

            statuses = {i: w.segment.pipeline_status for i, w in self._workers.items()}
            succeeded = tuple(sorted(i for i, s in statuses.items() if s == PipelineStatus.DONE))
            failed = tuple(sorted(i for i, s in statuses.items() if s == PipelineStatus.FAILED))

            self._set_state(ControllerState.IDLE)

        logger.info(f"Recording {self.recording_id} resolved: {len(succeeded)} done, {len(failed)} failed")
        if self.services.bus:
            self.services.bus.publish(AllSegmentsResolved(self.recording_id, succeeded, failed))
        self._idle.set()


def _mark_interrupted(segment: Segment):
    segment.failed_stage = segment.pipeline_status if segment.pipeline_status in STAGES else PipelineStatus.STORING
    segment.pipeline_status = PipelineStatus.FAILED
    segment.error = f"Interrupted while {segment.failed_stage.value}"
