import logging
from typing import Dict, List, Tuple
from workshop_capture.core.config.settings import settings
from workshop_capture.core.errors import ExtractionUnavailable
from workshop_capture.features.checklist.domain.models import ChecklistDefinition
from ..domain.interfaces import IChecklistExtractor, IExtractionService, ITokenizer
from ..domain.models import EntryEvidence, ExtractedFinding, ExtractionResult, WindowConfig

logger = logging.getLogger(__name__)


def build_windows(text: str, tokenizer: ITokenizer, config: WindowConfig) -> List[str]:
    """
    Splits the cumulative transcript on paragraph (segment) boundaries into windows
    no larger than config.target_size tokens, each window starting with a tail of the
    previous one so an answer spanning a boundary is still seen whole.
    """
    blocks = [b.strip() for b in text.split("\n\n") if b.strip()]
    enriched: List[Tuple[str, int]] = [(b, tokenizer.count_tokens(b)) for b in blocks]

    windows: List[str] = []
    current: List[Tuple[str, int]] = []
    current_tokens = 0

    for i, (block, tokens) in enumerate(enriched):
        if current_tokens + tokens > config.target_size and current:
            windows.append("\n\n".join(b for b, _ in current))

            # Look backwards to fill the overlap quota
            overlap: List[Tuple[str, int]] = []
            overlap_tokens = 0
            back_ptr = i - 1
            while back_ptr >= 0:
                b_block, b_tokens = enriched[back_ptr]
                if overlap_tokens + b_tokens > config.overlap_size:
                    break
                overlap.insert(0, (b_block, b_tokens))
                overlap_tokens += b_tokens
                back_ptr -= 1

            current = overlap
            current_tokens = overlap_tokens

        if tokens > config.target_size:
            logger.warning(f"Transcript block of {tokens} tokens exceeds window target {config.target_size}")

        current.append((block, tokens))
        current_tokens += tokens

    if current:
        windows.append("\n\n".join(b for b, _ in current))

    return windows


def merge_results(results: List[ExtractionResult]) -> ExtractionResult:
    """Union of per-window results; the most confident evidence wins per entry."""
    best: Dict[str, EntryEvidence] = {}
    findings: List[ExtractedFinding] = []
    seen_findings = set()

    for result in results:
        for evidence in result.obtained:
            current = best.get(evidence.entry_id)
            if current is None or evidence.confidence.rank > current.confidence.rank:
                best[evidence.entry_id] = evidence
        for finding in result.findings:
            # Overlapping windows can report the same finding twice within one pass.
            key = (finding.topic, finding.detail)
            if key not in seen_findings:
                seen_findings.add(key)
                findings.append(finding)

    return ExtractionResult(obtained=list(best.values()), findings=findings)


class ExtractionService(IExtractionService):
    def __init__(self, extractor: IChecklistExtractor, tokenizer: ITokenizer, config: WindowConfig = None):
        self.extractor = extractor
        self.tokenizer = tokenizer
        self.config = config or WindowConfig(context_window_limit=settings.CONTEXT_WINDOW_LIMIT)

    def extract(self, cumulative_text: str, definition: ChecklistDefinition) -> ExtractionResult:
        if not cumulative_text.strip():
            return ExtractionResult()

        try:
            windows = build_windows(cumulative_text, self.tokenizer, self.config)
            if len(windows) > 1:
                logger.info(f"Transcript split into {len(windows)} extraction windows")
            results = [self.extractor.extract(window, definition) for window in windows]
        except Exception as e:
            raise ExtractionUnavailable(f"Extraction failed for question {definition.question_id}: {e}") from e

        return merge_results(results)
