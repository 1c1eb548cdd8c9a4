# File: workshop_capture/features/extraction/domain/models.py
from dataclasses import dataclass, field
from typing import Dict, List
from workshop_capture.core.common.enums import Confidence

@dataclass(frozen=True)
class EntryEvidence:
    """The extractor's claim that a checklist entry is answered, with the concrete value heard."""
    entry_id: str
    confidence: Confidence = Confidence.MEDIUM
    detail: str = ""

@dataclass(frozen=True)
class ExtractedFinding:
    topic: str
    detail: str

@dataclass
class ExtractionResult:
    obtained: List[EntryEvidence] = field(default_factory=list)
    findings: List[ExtractedFinding] = field(default_factory=list)

    @property
    def obtained_entry_ids(self) -> List[str]:
        return [e.entry_id for e in self.obtained]

    def evidence_by_id(self) -> Dict[str, EntryEvidence]:
        return {e.entry_id: e for e in self.obtained}

@dataclass
class WindowConfig:
    """
    Sliding-window budget for long cumulative transcripts.
    Defaults to Qwen 2.5 7B settings; the prompt and the checklist take the rest.
    """
    context_window_limit: int = 8192
    safe_buffer_ratio: float = 0.60   # transcript share of the window (prompt + checklist + answer take the rest)
    overlap_ratio: float = 0.05       # carried over from the PREVIOUS window

    @property
    def target_size(self) -> int:
        return int(self.context_window_limit * self.safe_buffer_ratio)

    @property
    def overlap_size(self) -> int:
        return int(self.context_window_limit * self.overlap_ratio)
