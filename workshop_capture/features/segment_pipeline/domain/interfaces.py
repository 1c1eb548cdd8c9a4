from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID
from workshop_capture.features.capture.domain.models import Segment

class ISegmentRepository(ABC):
    @abstractmethod
    def save(self, segment: Segment, answer_id: Optional[UUID] = None) -> None:
        """Upserts the pipeline state of (recording_id, index). Audio bytes are not persisted here."""
        pass

    @abstractmethod
    def list_for_recording(self, recording_id: UUID) -> List[Segment]:
        pass

    @abstractmethod
    def list_for_answer(self, answer_id: UUID) -> List[Segment]:
        pass
