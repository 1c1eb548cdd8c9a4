import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, Integer, Float, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum, Uuid
from workshop_capture.core.database.base import Base
from workshop_capture.core.common.enums import PipelineStatus

def utc_now():
    return datetime.now(timezone.utc)

class SegmentModel(Base):
    """
    Pipeline state of one recorded segment.
    Rows are never deleted, failed ones included, so a session can be audited or resumed.
    """
    __tablename__ = "segments"
    __table_args__ = (UniqueConstraint("recording_id", "segment_index", name="uq_segment_recording_index"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recording_id = Column(Uuid, nullable=False, index=True)
    segment_index = Column(Integer, nullable=False)
    answer_id = Column(Uuid, ForeignKey("answers.id"), nullable=True, index=True)

    duration_seconds = Column(Float, nullable=False)
    raw_audio_ref = Column(Uuid, ForeignKey("segment_audio.id"), nullable=True)
    transcript_text = Column(Text, nullable=True)

    status = Column(SQLEnum(PipelineStatus), default=PipelineStatus.QUEUED, nullable=False)
    error = Column(Text, nullable=True)
    # Stage value a manual retry resumes from
    failed_stage = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
