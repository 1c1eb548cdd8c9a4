from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from uuid import UUID
from .models import ChecklistDefinition, ChecklistEntry, ChecklistSnapshot, GeneratedChecklist, QuestionContext

class IChecklistStore(ABC):
    """
    Append-only, versioned record of snapshots per Answer.
    """
    @abstractmethod
    def append_snapshot(self, answer_id: UUID, snapshot: ChecklistSnapshot, expected_version: Optional[int]) -> int:
        """
        Publishes `snapshot` only if the current latest version is still `expected_version`
        (None = no snapshot yet). Either the snapshot and the pointer move together or nothing is written.
        Raises MergeConflict when the pointer has moved.
        """
        pass

    @abstractmethod
    def latest(self, answer_id: UUID) -> Optional[ChecklistSnapshot]:
        pass

    @abstractmethod
    def history(self, answer_id: UUID) -> List[ChecklistSnapshot]:
        pass

class IDefinitionRepository(ABC):
    @abstractmethod
    def latest(self, question_id: str) -> Optional[ChecklistDefinition]:
        pass

    @abstractmethod
    def create(self, question_id: str, entries: Sequence[ChecklistEntry], summary: str = "") -> ChecklistDefinition:
        """Stores a new definition version (previous versions are kept)."""
        pass

class IChecklistGenerator(ABC):
    @abstractmethod
    def generate_checklist(self, context: QuestionContext) -> GeneratedChecklist:
        pass
