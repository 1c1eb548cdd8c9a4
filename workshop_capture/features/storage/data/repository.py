from uuid import UUID
from typing import Optional
from sqlalchemy.exc import IntegrityError
from workshop_capture.core.database.connection import SessionLocal
from .sql_models import StoredFileModel, SegmentAudioModel
from ..domain.interfaces import IStorageRepository

class SqlStorageRepo(IStorageRepository):
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def find_file_path(self, file_hash: str) -> Optional[str]:
        with self.session_factory() as db:
            existing = db.query(StoredFileModel).filter(StoredFileModel.file_hash == file_hash).first()
            return existing.file_path if existing else None

    def create_segment_audio(self, file_data: dict, segment_data: dict) -> UUID:
        """
        Transactional logic:
        1. Reuse the File row if the hash is known (Deduplication).
        2. Otherwise insert it.
        3. Insert the Segment Audio row linked to the File.
        Two workers storing identical audio race on the unique hash; the loser re-reads.
        """
        for attempt in range(2):
            with self.session_factory() as db:
                try:
                    existing_file = db.query(StoredFileModel).filter(
                        StoredFileModel.file_hash == file_data["file_hash"]
                    ).first()

                    if existing_file:
                        file_id = existing_file.id
                    else:
                        new_file = StoredFileModel(**file_data)
                        db.add(new_file)
                        db.flush()
                        file_id = new_file.id

                    record = SegmentAudioModel(**segment_data, file_id=file_id)
                    db.add(record)
                    db.commit()
                    return record.id
                except IntegrityError:
                    db.rollback()
                    if attempt == 1:
                        raise
                except Exception:
                    db.rollback()
                    raise

    def get_path(self, segment_audio_id: UUID) -> Optional[str]:
        with self.session_factory() as db:
            record = db.get(SegmentAudioModel, segment_audio_id)
            return record.stored_file.file_path if record else None
