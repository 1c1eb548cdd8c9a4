# File: workshop_capture/features/storage/domain/interfaces.py
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple
from uuid import UUID
from .models import SegmentRef, StoreRequest

class IHasher(ABC):
    @abstractmethod
    def calculate_sha256(self, data: bytes) -> str:
        """Calculates the SHA256 hash of an in-memory audio buffer."""
        pass

class IFileSystem(ABC):
    @abstractmethod
    def write_artifact(self, data: bytes, file_hash: str, extension: str) -> Tuple[Path, int]:
        """
        Writes the bytes into artifact storage.
        Returns: (absolute_path, file_size_bytes)
        """
        pass

class IStorageRepository(ABC):
    @abstractmethod
    def find_file_path(self, file_hash: str) -> Optional[str]:
        """Returns the stored path if a file with this hash already exists."""
        pass

    @abstractmethod
    def create_segment_audio(self, file_data: dict, segment_data: dict) -> UUID:
        """
        Creates the per-segment record and (if new) the physical file record in one transaction.
        Returns the new segment audio ID.
        """
        pass

    @abstractmethod
    def get_path(self, segment_audio_id: UUID) -> Optional[str]:
        pass

class IAudioStore(ABC):
    """
    The Storage Service as seen by the segment pipeline.
    """
    @abstractmethod
    def store(self, request: StoreRequest) -> SegmentRef:
        pass

    @abstractmethod
    def resolve(self, segment_ref_id: UUID) -> Path:
        pass
