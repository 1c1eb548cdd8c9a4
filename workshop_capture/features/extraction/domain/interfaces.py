from abc import ABC, abstractmethod
from workshop_capture.features.checklist.domain.models import ChecklistDefinition
from .models import ExtractionResult

class ITokenizer(ABC):
    """
    Abstracts the token counting logic so window building doesn't depend on a specific library.
    """
    @abstractmethod
    def count_tokens(self, text: str) -> int:
        pass

class IChecklistExtractor(ABC):
    """
    One model call: match a piece of transcript against the checklist.
    """
    @abstractmethod
    def extract(self, text: str, definition: ChecklistDefinition) -> ExtractionResult:
        pass

class IExtractionService(ABC):
    """
    The Extraction Service as seen by the segment pipeline and the controller's analyze action.
    """
    @abstractmethod
    def extract(self, cumulative_text: str, definition: ChecklistDefinition) -> ExtractionResult:
        """Raises ExtractionUnavailable on any failure."""
        pass
