import logging
from pathlib import Path
from uuid import UUID
from ..domain.interfaces import IAudioStore, IHasher, IFileSystem, IStorageRepository
from ..domain.models import SegmentRef, StoreRequest
from ..data.hasher import SHA256Hasher
from ..data.local_fs import LocalFileSystem
from ..data.repository import SqlStorageRepo

logger = logging.getLogger(__name__)

class StorageService(IAudioStore):
    """
    Facade for the Storage Feature.
    Orchestrates Hashing, Filesystem writes, and Database persistence for segment audio.
    """
    def __init__(self, hasher: IHasher = None, fs: IFileSystem = None, repo: IStorageRepository = None):
        self.hasher = hasher or SHA256Hasher()
        self.fs = fs or LocalFileSystem()
        self.repo = repo or SqlStorageRepo()

    def store(self, request: StoreRequest) -> SegmentRef:
        """
        Persists one segment's audio.
        - Hashes the bytes.
        - Skips the disk write if the same audio is already stored.
        - Creates the database records.
        """
        file_hash = self.hasher.calculate_sha256(request.audio)

        existing_path = self.repo.find_file_path(file_hash)
        if existing_path:
            final_path = Path(existing_path)
            file_size = len(request.audio)
        else:
            final_path, file_size = self.fs.write_artifact(request.audio, file_hash, request.extension)

        file_data = {
            "file_path": str(final_path),
            "file_size_bytes": file_size,
            "file_hash": file_hash
        }
        segment_data = {
            "session_ref": request.session_ref,
            "segment_index": request.segment_index,
            "duration_seconds": request.duration_seconds
        }

        segment_audio_id = self.repo.create_segment_audio(file_data, segment_data)
        logger.info(f"Stored segment {request.segment_index} ({file_size} bytes) as {segment_audio_id}")
        return SegmentRef(id=segment_audio_id, path=final_path)

    def resolve(self, segment_ref_id: UUID) -> Path:
        path = self.repo.get_path(segment_ref_id)
        if not path:
            raise FileNotFoundError(f"No stored audio for segment ref {segment_ref_id}")
        return Path(path)
