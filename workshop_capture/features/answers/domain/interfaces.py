from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID
from workshop_capture.core.common.enums import AnswerStatus
from .models import Answer, Respondent

class IAnswerRepository(ABC):
    @abstractmethod
    def get(self, answer_id: UUID) -> Optional[Answer]:
        pass

    @abstractmethod
    def find_by_question(self, question_id: str) -> Optional[Answer]:
        pass

    @abstractmethod
    def get_or_create(self, question_id: str, respondent: Respondent = None) -> Answer:
        """Not safe against concurrent first creation by itself; callers serialise it."""
        pass

    @abstractmethod
    def append_transcript(self, answer_id: UUID, segment_index: Optional[int], text: str) -> Answer:
        """
        Appends one segment's text to the cumulative transcript in a single statement
        and returns the Answer as it stands afterwards.
        """
        pass

    @abstractmethod
    def set_status(self, answer_id: UUID, status: AnswerStatus) -> None:
        pass

    @abstractmethod
    def save_notes(self, answer_id: UUID, notes: str, respondent: Respondent = None) -> Answer:
        pass
