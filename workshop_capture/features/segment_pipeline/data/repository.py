from typing import List, Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from workshop_capture.core.common.enums import PipelineStatus
from workshop_capture.core.database.connection import SessionLocal
from workshop_capture.features.capture.domain.models import Segment
from .sql_models import SegmentModel
from ..domain.interfaces import ISegmentRepository


class SqlSegmentRepo(ISegmentRepository):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    @staticmethod
    def _to_domain(row: SegmentModel) -> Segment:
        return Segment(
            recording_id=row.recording_id,
            index=row.segment_index,
            duration_seconds=row.duration_seconds,
            raw_audio_ref=row.raw_audio_ref,
            transcript_text=row.transcript_text,
            pipeline_status=row.status,
            error=row.error,
            failed_stage=PipelineStatus(row.failed_stage) if row.failed_stage else None
        )

    @staticmethod
    def _apply(row: SegmentModel, segment: Segment, answer_id: Optional[UUID]):
        row.duration_seconds = segment.duration_seconds
        row.raw_audio_ref = segment.raw_audio_ref
        row.transcript_text = segment.transcript_text
        row.status = segment.pipeline_status
        row.error = segment.error
        row.failed_stage = segment.failed_stage.value if segment.failed_stage else None
        if answer_id is not None:
            row.answer_id = answer_id

    def _find(self, db, recording_id: UUID, index: int) -> Optional[SegmentModel]:
        return db.query(SegmentModel).filter(
            SegmentModel.recording_id == recording_id,
            SegmentModel.segment_index == index
        ).first()

    def save(self, segment: Segment, answer_id: Optional[UUID] = None) -> None:
        with self.session_factory() as db:
            row = self._find(db, segment.recording_id, segment.index)
            if row is None:
                row = SegmentModel(recording_id=segment.recording_id, segment_index=segment.index)
                db.add(row)
            self._apply(row, segment, answer_id)
            try:
                db.commit()
                return
            except IntegrityError:
                # Only the owning worker writes a segment; a clash means a stale duplicate insert.
                db.rollback()

            row = self._find(db, segment.recording_id, segment.index)
            self._apply(row, segment, answer_id)
            db.commit()

    def list_for_recording(self, recording_id: UUID) -> List[Segment]:
        with self.session_factory() as db:
            rows = db.query(SegmentModel).filter(
                SegmentModel.recording_id == recording_id
            ).order_by(SegmentModel.segment_index).all()
            return [self._to_domain(r) for r in rows]

    def list_for_answer(self, answer_id: UUID) -> List[Segment]:
        with self.session_factory() as db:
            rows = db.query(SegmentModel).filter(
                SegmentModel.answer_id == answer_id
            ).order_by(SegmentModel.created_at, SegmentModel.segment_index).all()
            return [self._to_domain(r) for r in rows]
