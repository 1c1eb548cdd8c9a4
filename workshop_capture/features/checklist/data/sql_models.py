import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, JSON, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from workshop_capture.core.database.base import Base

def utc_now():
    return datetime.now(timezone.utc)

class ChecklistDefinitionModel(Base):
    """
    Versioned checklist per question. Regeneration inserts a new version; old ones stay for audit.
    """
    __tablename__ = "checklist_definitions"
    __table_args__ = (UniqueConstraint("question_id", "version", name="uq_definition_version"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(String, nullable=False, index=True)
    version = Column(Integer, nullable=False)

    # [{"id", "description", "importance", "suggested_follow_up"}, ...] in display order
    entries = Column(JSON, nullable=False, default=list)
    summary = Column(Text, nullable=False, default="")

    created_at = Column(DateTime(timezone=True), default=utc_now)

class ChecklistSnapshotModel(Base):
    """
    The append-only observation log. The unique (answer_id, version) pair is what turns
    two concurrent publishes of the same next version into a conflict instead of a lost update.
    """
    __tablename__ = "checklist_snapshots"
    __table_args__ = (UniqueConstraint("answer_id", "version", name="uq_snapshot_version"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    answer_id = Column(Uuid, ForeignKey("answers.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False)
    definition_version = Column(Integer, nullable=False)

    obtained = Column(JSON, nullable=False, default=list)
    missing = Column(JSON, nullable=False, default=list)
    additional_findings = Column(JSON, nullable=False, default=list)

    source_segment_index = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    answer = relationship("AnswerModel")
