# File: workshop_capture/features/checklist/domain/models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from workshop_capture.core.common.enums import Confidence, Importance


def utc_now():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChecklistEntry:
    """One piece of information the question is meant to collect."""
    id: str
    description: str
    importance: Importance
    suggested_follow_up: str = ""


@dataclass(frozen=True)
class ChecklistDefinition:
    """
    The target schema for a question. Immutable; regeneration produces a new version.
    """
    question_id: str
    version: int
    entries: Tuple[ChecklistEntry, ...]
    summary: str = ""

    def __post_init__(self):
        ids = [e.id for e in self.entries]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Checklist for question {self.question_id} has duplicate entry ids.")

    @property
    def entry_ids(self) -> List[str]:
        return [e.id for e in self.entries]

    def get(self, entry_id: str) -> Optional[ChecklistEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None


@dataclass(frozen=True)
class ObtainedEntry:
    entry_id: str
    # None when the evidence came from a manual re-analysis rather than one segment
    evidence_segment_index: Optional[int]
    confidence: Confidence
    detail: str = ""


@dataclass(frozen=True)
class MissingEntry:
    entry_id: str
    importance: Importance


@dataclass(frozen=True)
class Finding:
    """Valuable information that goes beyond the checklist (pain points, integrations, ...)."""
    topic: str
    detail: str
    source_segment_index: Optional[int] = None


@dataclass(frozen=True)
class ChecklistSnapshot:
    """
    One cumulative merge result ("observation").
    Every definition entry is in exactly one of `obtained` / `missing`.
    """
    version: int
    definition_version: int
    obtained: Tuple[ObtainedEntry, ...]
    missing: Tuple[MissingEntry, ...]
    additional_findings: Tuple[Finding, ...] = ()
    source_segment_index: Optional[int] = None
    created_at: datetime = field(default_factory=utc_now)

    @property
    def obtained_ids(self) -> List[str]:
        return [o.entry_id for o in self.obtained]

    @property
    def missing_ids(self) -> List[str]:
        return [m.entry_id for m in self.missing]

    def obtained_by_id(self) -> Dict[str, ObtainedEntry]:
        return {o.entry_id: o for o in self.obtained}

    @property
    def blocking_missing(self) -> List[MissingEntry]:
        return [m for m in self.missing if m.importance.blocks_progress]

    @property
    def can_proceed(self) -> bool:
        """Answerable enough to move on: nice-to-have gaps never block."""
        return not self.blocking_missing

    def missing_counts(self) -> Dict[Importance, int]:
        counts = {importance: 0 for importance in Importance}
        for m in self.missing:
            counts[m.importance] += 1
        return counts

    def covers(self, definition: ChecklistDefinition) -> bool:
        obtained, missing = set(self.obtained_ids), set(self.missing_ids)
        return not (obtained & missing) and (obtained | missing) == set(definition.entry_ids)


@dataclass(frozen=True)
class QuestionContext:
    """
    What the checklist generator needs to know about a question.
    Workshop/session/question records themselves live outside this package.
    """
    question_id: str
    question_text: str
    is_critical: bool = False
    session_name: str = ""
    entity_name: str = ""
    business_context: str = ""
    # Items already collected by earlier questions of the same session; the generator must skip them.
    already_obtained: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GeneratedChecklist:
    entries: Tuple[ChecklistEntry, ...]
    summary: str = ""
