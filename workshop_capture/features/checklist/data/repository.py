import logging
from typing import List, Optional, Sequence
from uuid import UUID
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from workshop_capture.core.common.enums import Confidence, Importance
from workshop_capture.core.database.connection import SessionLocal
from workshop_capture.core.errors import AnswerNotFound, MergeConflict
from workshop_capture.features.answers.data.sql_models import AnswerModel
from .sql_models import ChecklistDefinitionModel, ChecklistSnapshotModel
from ..domain.interfaces import IChecklistStore, IDefinitionRepository
from ..domain.models import (
    ChecklistDefinition, ChecklistEntry, ChecklistSnapshot, Finding, MissingEntry, ObtainedEntry
)

logger = logging.getLogger(__name__)


class SqlChecklistStore(IChecklistStore):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def append_snapshot(self, answer_id: UUID, snapshot: ChecklistSnapshot, expected_version: Optional[int]) -> int:
        if snapshot.version != (expected_version or 0) + 1:
            raise ValueError(
                f"Snapshot version {snapshot.version} does not follow expected version {expected_version}"
            )

        with self.session_factory() as db:
            try:
                # 1. Move the pointer only if nobody else moved it first (compare-and-swap)
                current = AnswerModel.latest_snapshot_version
                condition = current.is_(None) if expected_version is None else current == expected_version
                result = db.execute(
                    update(AnswerModel)
                    .where(AnswerModel.id == answer_id, condition)
                    .values(latest_snapshot_version=snapshot.version)
                )

                if result.rowcount != 1:
                    db.rollback()
                    if db.get(AnswerModel, answer_id) is None:
                        raise AnswerNotFound(f"Answer {answer_id} not found.")
                    raise MergeConflict(answer_id, expected_version)

                # 2. Insert the snapshot in the same transaction
                db.add(self._to_row(answer_id, snapshot))
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise MergeConflict(answer_id, expected_version) from e

        logger.info(f"Answer {answer_id}: published snapshot v{snapshot.version}")
        return snapshot.version

    def latest(self, answer_id: UUID) -> Optional[ChecklistSnapshot]:
        with self.session_factory() as db:
            row = (
                db.query(ChecklistSnapshotModel)
                .filter(ChecklistSnapshotModel.answer_id == answer_id)
                .order_by(ChecklistSnapshotModel.version.desc())
                .first()
            )
            return self._to_domain(row) if row else None

    def history(self, answer_id: UUID) -> List[ChecklistSnapshot]:
        with self.session_factory() as db:
            rows = (
                db.query(ChecklistSnapshotModel)
                .filter(ChecklistSnapshotModel.answer_id == answer_id)
                .order_by(ChecklistSnapshotModel.version)
                .all()
            )
            return [self._to_domain(r) for r in rows]

    @staticmethod
    def _to_row(answer_id: UUID, snapshot: ChecklistSnapshot) -> ChecklistSnapshotModel:
        return ChecklistSnapshotModel(
            answer_id=answer_id,
            version=snapshot.version,
            definition_version=snapshot.definition_version,
            obtained=[
                {"entry_id": o.entry_id, "segment": o.evidence_segment_index,
                 "confidence": o.confidence.value, "detail": o.detail}
                for o in snapshot.obtained
            ],
            missing=[{"entry_id": m.entry_id, "importance": m.importance.value} for m in snapshot.missing],
            additional_findings=[
                {"topic": f.topic, "detail": f.detail, "segment": f.source_segment_index}
                for f in snapshot.additional_findings
            ],
            source_segment_index=snapshot.source_segment_index,
            created_at=snapshot.created_at
        )

    @staticmethod
    def _to_domain(row: ChecklistSnapshotModel) -> ChecklistSnapshot:
        return ChecklistSnapshot(
            version=row.version,
            definition_version=row.definition_version,
            obtained=tuple(
                ObtainedEntry(o["entry_id"], o.get("segment"), Confidence(o["confidence"]), o.get("detail", ""))
                for o in row.obtained or []
            ),
            missing=tuple(MissingEntry(m["entry_id"], Importance(m["importance"])) for m in row.missing or []),
            additional_findings=tuple(
                Finding(f["topic"], f["detail"], f.get("segment")) for f in row.additional_findings or []
            ),
            source_segment_index=row.source_segment_index,
            created_at=row.created_at
        )


class SqlDefinitionRepo(IDefinitionRepository):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def latest(self, question_id: str) -> Optional[ChecklistDefinition]:
        with self.session_factory() as db:
            row = (
                db.query(ChecklistDefinitionModel)
                .filter(ChecklistDefinitionModel.question_id == question_id)
                .order_by(ChecklistDefinitionModel.version.desc())
                .first()
            )
            return self._to_domain(row) if row else None

    def create(self, question_id: str, entries: Sequence[ChecklistEntry], summary: str = "") -> ChecklistDefinition:
        definition_entries = tuple(entries)
        with self.session_factory() as db:
            try:
                max_version = (
                    db.query(func.max(ChecklistDefinitionModel.version))
                    .filter(ChecklistDefinitionModel.question_id == question_id)
                    .scalar()
                )
                definition = ChecklistDefinition(
                    question_id=question_id,
                    version=(max_version or 0) + 1,
                    entries=definition_entries,
                    summary=summary
                )
                db.add(ChecklistDefinitionModel(
                    question_id=question_id,
                    version=definition.version,
                    entries=[
                        {"id": e.id, "description": e.description,
                         "importance": e.importance.value, "suggested_follow_up": e.suggested_follow_up}
                        for e in definition.entries
                    ],
                    summary=summary
                ))
                db.commit()
            except Exception:
                db.rollback()
                raise

        logger.info(f"Question {question_id}: stored checklist definition v{definition.version} "
                    f"({len(definition.entries)} entries)")
        return definition

    @staticmethod
    def _to_domain(row: ChecklistDefinitionModel) -> ChecklistDefinition:
        return ChecklistDefinition(
            question_id=row.question_id,
            version=row.version,
            entries=tuple(
                ChecklistEntry(
                    id=e["id"],
                    description=e["description"],
                    importance=Importance(e["importance"]),
                    suggested_follow_up=e.get("suggested_follow_up", "")
                )
                for e in row.entries or []
            ),
            summary=row.summary or ""
        )
