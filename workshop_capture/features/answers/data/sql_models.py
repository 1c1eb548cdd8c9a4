import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, DateTime, Enum as SQLEnum, Uuid
from workshop_capture.core.database.base import Base
from workshop_capture.core.common.enums import AnswerStatus

def utc_now():
    return datetime.now(timezone.utc)

class AnswerModel(Base):
    """
    One row per question. The transcript grows by appends only.
    """
    __tablename__ = "answers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(String, nullable=False, unique=True, index=True)

    status = Column(SQLEnum(AnswerStatus), default=AnswerStatus.PENDING, nullable=False)
    transcript_text = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")

    respondent_name = Column(String, nullable=True)
    respondent_role = Column(String, nullable=True)

    # Compare-and-swap pointer to the current checklist snapshot
    latest_snapshot_version = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
