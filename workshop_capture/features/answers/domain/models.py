# File: workshop_capture/features/answers/domain/models.py
from dataclasses import dataclass
from typing import Optional
from uuid import UUID
from workshop_capture.core.common.enums import AnswerStatus

@dataclass(frozen=True)
class Respondent:
    name: Optional[str] = None
    role: Optional[str] = None

@dataclass(frozen=True)
class Answer:
    """
    One question's response state, as read from the database.
    `transcript_text` is the concatenation of every transcribed segment so far.
    """
    id: UUID
    question_id: str
    status: AnswerStatus
    transcript_text: str = ""
    notes: str = ""
    respondent: Respondent = Respondent()
    latest_snapshot_version: Optional[int] = None

    @property
    def cumulative_text(self) -> str:
        """The text handed to extraction: spoken transcript plus typed notes."""
        parts = []
        if self.transcript_text:
            parts.append(self.transcript_text)
        if self.notes:
            parts.append(f"[Facilitator notes]\n{self.notes}")
        return "\n\n".join(parts)
