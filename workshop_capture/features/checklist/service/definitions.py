import logging
from typing import Optional, Sequence
from workshop_capture.core.errors import ChecklistUnavailable
from ..domain.interfaces import IChecklistGenerator, IDefinitionRepository
from ..domain.models import ChecklistDefinition, ChecklistEntry, QuestionContext

logger = logging.getLogger(__name__)


class ChecklistDefinitionService:
    """
    Owns the question -> checklist definition lifecycle.
    A definition is generated once; `force=True` regenerates it as a new version.
    """

    def __init__(self, repo: IDefinitionRepository, generator: Optional[IChecklistGenerator] = None):
        self.repo = repo
        self.generator = generator

    def current(self, question_id: str) -> Optional[ChecklistDefinition]:
        return self.repo.latest(question_id)

    def define(self, question_id: str, entries: Sequence[ChecklistEntry], summary: str = "") -> ChecklistDefinition:
        """Stores a facilitator-authored checklist as the next version."""
        if not entries:
            raise ValueError("A checklist needs at least one entry.")
        return self.repo.create(question_id, entries, summary)

    def get_or_generate(self, context: QuestionContext, force: bool = False) -> ChecklistDefinition:
        existing = self.repo.latest(context.question_id)
        if existing and not force:
            return existing

        if self.generator is None:
            raise ChecklistUnavailable("No checklist generator configured.")

        if existing:
            logger.info(f"Regenerating checklist for question {context.question_id} (was v{existing.version})")

        try:
            generated = self.generator.generate_checklist(context)
        except Exception as e:
            raise ChecklistUnavailable(f"Checklist generation failed for {context.question_id}: {e}") from e

        return self.repo.create(context.question_id, generated.entries, generated.summary)
