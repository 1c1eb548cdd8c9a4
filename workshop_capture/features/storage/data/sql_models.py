import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from workshop_capture.core.database.base import Base

def utc_now():
    return datetime.now(timezone.utc)

class StoredFileModel(Base):
    __tablename__ = "stored_files"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    file_path = Column(String, nullable=False, unique=True)
    file_size_bytes = Column(Integer, nullable=False)
    file_hash = Column(String, nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    # One physical file can back several segments (identical audio is written once)
    segments = relationship("SegmentAudioModel", back_populates="stored_file")

class SegmentAudioModel(Base):
    """
    The logical record returned to the pipeline as the segment's raw audio ref.
    """
    __tablename__ = "segment_audio"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_ref = Column(Uuid, nullable=False, index=True)
    segment_index = Column(Integer, nullable=False)
    duration_seconds = Column(Float, nullable=False)
    file_id = Column(Uuid, ForeignKey("stored_files.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now)

    stored_file = relationship("StoredFileModel", back_populates="segments")
