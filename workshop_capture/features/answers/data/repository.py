import logging
from uuid import UUID
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from workshop_capture.core.common.enums import AnswerStatus
from workshop_capture.core.database.connection import SessionLocal
from workshop_capture.core.errors import AnswerNotFound
from .sql_models import AnswerModel, utc_now
from ..domain.interfaces import IAnswerRepository
from ..domain.models import Answer, Respondent

logger = logging.getLogger(__name__)


def format_transcript_chunk(segment_index: Optional[int], text: str) -> str:
    """'[Segment 3]\\n...' block; segment numbers are 1-based for readers."""
    header = f"[Segment {segment_index + 1}]" if segment_index is not None else "[Manual entry]"
    return f"{header}\n{text.strip()}\n\n"


class SqlAnswerRepo(IAnswerRepository):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    @staticmethod
    def _to_domain(row: AnswerModel) -> Answer:
        return Answer(
            id=row.id,
            question_id=row.question_id,
            status=row.status,
            # Chunks are stored with trailing separators; readers get clean text.
            transcript_text=(row.transcript_text or "").strip(),
            notes=row.notes or "",
            respondent=Respondent(name=row.respondent_name, role=row.respondent_role),
            latest_snapshot_version=row.latest_snapshot_version
        )

    def get(self, answer_id: UUID) -> Optional[Answer]:
        with self.session_factory() as db:
            row = db.get(AnswerModel, answer_id)
            return self._to_domain(row) if row else None

    def find_by_question(self, question_id: str) -> Optional[Answer]:
        with self.session_factory() as db:
            row = db.query(AnswerModel).filter(AnswerModel.question_id == question_id).first()
            return self._to_domain(row) if row else None

    def get_or_create(self, question_id: str, respondent: Respondent = None) -> Answer:
        existing = self.find_by_question(question_id)
        if existing:
            return existing

        respondent = respondent or Respondent()
        with self.session_factory() as db:
            try:
                row = AnswerModel(
                    question_id=question_id,
                    status=AnswerStatus.IN_PROGRESS,
                    transcript_text="",
                    notes="",
                    respondent_name=respondent.name,
                    respondent_role=respondent.role
                )
                db.add(row)
                db.commit()
                db.refresh(row)
                logger.info(f"Created Answer {row.id} for question {question_id}")
                return self._to_domain(row)
            except IntegrityError:
                # Another process created it first; the unique question_id makes that safe.
                db.rollback()

        return self.find_by_question(question_id)

    def append_transcript(self, answer_id: UUID, segment_index: Optional[int], text: str) -> Answer:
        chunk = format_transcript_chunk(segment_index, text)
        with self.session_factory() as db:
            # Single-statement append: concurrent workers can never overwrite each other.
            result = db.execute(
                update(AnswerModel)
                .where(AnswerModel.id == answer_id)
                .values(transcript_text=AnswerModel.transcript_text + chunk, updated_at=utc_now())
            )
            if result.rowcount != 1:
                db.rollback()
                raise AnswerNotFound(f"Answer {answer_id} not found.")
            db.commit()

            row = db.get(AnswerModel, answer_id)
            db.refresh(row)
            return self._to_domain(row)

    def set_status(self, answer_id: UUID, status: AnswerStatus) -> None:
        with self.session_factory() as db:
            row = db.get(AnswerModel, answer_id)
            if not row:
                raise AnswerNotFound(f"Answer {answer_id} not found.")
            if row.status != status:
                logger.info(f"Answer {answer_id}: {row.status.value} -> {status.value}")
                row.status = status
                db.commit()

    def save_notes(self, answer_id: UUID, notes: str, respondent: Respondent = None) -> Answer:
        with self.session_factory() as db:
            row = db.get(AnswerModel, answer_id)
            if not row:
                raise AnswerNotFound(f"Answer {answer_id} not found.")
            row.notes = notes or ""
            if respondent is not None:
                row.respondent_name = respondent.name
                row.respondent_role = respondent.role
            db.commit()
            db.refresh(row)
            return self._to_domain(row)
