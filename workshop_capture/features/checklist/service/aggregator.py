# File: workshop_capture/features/checklist/service/aggregator.py
import logging
from threading import Lock
from typing import Dict, Optional
from uuid import UUID

from workshop_capture.core.common.enums import AnswerStatus
from workshop_capture.core.errors import MergeConflict
from workshop_capture.core.events.bus import EventBus
from workshop_capture.core.events.types import SnapshotPublished
from workshop_capture.features.answers.domain.interfaces import IAnswerRepository
from workshop_capture.features.extraction.domain.models import ExtractionResult
from ..domain.interfaces import IChecklistStore
from ..domain.models import ChecklistDefinition, ChecklistSnapshot, Finding, MissingEntry, ObtainedEntry

logger = logging.getLogger(__name__)


def merge_snapshot(definition: ChecklistDefinition,
                   prior: Optional[ChecklistSnapshot],
                   result: ExtractionResult,
                   source_segment_index: Optional[int]) -> ChecklistSnapshot:
    """
    Produces the next snapshot from the prior one and one extraction result.

    - Entries obtained in `prior` are carried forward untouched (evidence included).
    - Missing entries the result reports become obtained with this segment as evidence.
    - Everything else stays missing with the definition's importance.
    - Findings are appended as-is; repeats across segments are kept.

    A prior snapshot taken against an older definition version contributes its
    findings and its version number only: its entry ids belong to another checklist.
    """
    carried: Dict[str, ObtainedEntry] = {}
    findings = []
    if prior is not None:
        findings.extend(prior.additional_findings)
        if prior.definition_version == definition.version:
            carried = prior.obtained_by_id()

    evidence = result.evidence_by_id()
    obtained, missing = [], []

    for entry in definition.entries:
        if entry.id in carried:
            obtained.append(carried[entry.id])
        elif entry.id in evidence:
            reported = evidence[entry.id]
            obtained.append(ObtainedEntry(
                entry_id=entry.id,
                evidence_segment_index=source_segment_index,
                confidence=reported.confidence,
                detail=reported.detail
            ))
        else:
            missing.append(MissingEntry(entry_id=entry.id, importance=entry.importance))

    findings.extend(Finding(f.topic, f.detail, source_segment_index) for f in result.findings)

    return ChecklistSnapshot(
        version=(prior.version if prior else 0) + 1,
        definition_version=definition.version,
        obtained=tuple(obtained),
        missing=tuple(missing),
        additional_findings=tuple(findings),
        source_segment_index=source_segment_index
    )


class ChecklistAggregator:
    """
    Serialises read-merge-write per Answer.
    Workers extract in parallel but publish one at a time; the store's version CAS
    covers writers outside this process (a conflict is retried once, then raised).
    """

    def __init__(self, store: IChecklistStore, answers: IAnswerRepository, bus: EventBus = None):
        self.store = store
        self.answers = answers
        self.bus = bus
        self._locks_guard = Lock()
        self._locks: Dict[UUID, Lock] = {}

    def _lock_for(self, answer_id: UUID) -> Lock:
        with self._locks_guard:
            if answer_id not in self._locks:
                self._locks[answer_id] = Lock()
            return self._locks[answer_id]

    def publish(self, answer_id: UUID, definition: ChecklistDefinition,
                result: ExtractionResult, source_segment_index: Optional[int]) -> ChecklistSnapshot:
        with self._lock_for(answer_id):
            for attempt in (1, 2):
                # Re-read immediately before merging: another worker may have published meanwhile.
                prior = self.store.latest(answer_id)
                snapshot = merge_snapshot(definition, prior, result, source_segment_index)
                try:
                    self.store.append_snapshot(answer_id, snapshot, prior.version if prior else None)
                    break
                except MergeConflict:
                    if attempt == 2:
                        raise
                    logger.warning(f"Answer {answer_id}: snapshot v{snapshot.version} lost a publish race, retrying")

        newly = set(snapshot.obtained_ids) - set(prior.obtained_ids if prior else [])
        logger.info(f"Answer {answer_id}: v{snapshot.version} from segment {source_segment_index} "
                    f"(+{len(newly)} obtained, {len(snapshot.missing)} missing)")

        if snapshot.can_proceed:
            self.answers.set_status(answer_id, AnswerStatus.COMPLETED)

        if self.bus:
            self.bus.publish(SnapshotPublished(
                answer_id=answer_id,
                version=snapshot.version,
                source_segment_index=source_segment_index,
                can_proceed=snapshot.can_proceed
            ))
        return snapshot
