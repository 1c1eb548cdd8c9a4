import pytest
from workshop_capture.core.common.enums import Confidence, Importance
from workshop_capture.core.errors import ExtractionUnavailable
from workshop_capture.features.checklist.domain.models import ChecklistDefinition, ChecklistEntry
from workshop_capture.features.extraction.domain.interfaces import IChecklistExtractor, ITokenizer
from workshop_capture.features.extraction.domain.models import (
    EntryEvidence, ExtractedFinding, ExtractionResult, WindowConfig
)
from workshop_capture.features.extraction.service.api import ExtractionService, build_windows, merge_results


class Words(ITokenizer):
    def count_tokens(self, text):
        return len(text.split())


class Recorder(IChecklistExtractor):
    def __init__(self, fail=False):
        self.windows = []
        self.fail = fail

    def extract(self, text, definition):
        if self.fail:
            raise RuntimeError("CUDA out of memory")
        self.windows.append(text)
        return ExtractionResult(obtained=[EntryEvidence("erp", Confidence.LOW)] if "SAP" in text else [])


DEFINITION = ChecklistDefinition("q-1", 1, (ChecklistEntry("erp", "Current ERP", Importance.CRITICAL),))


def _paragraphs(count, words=10):
    return "\n\n".join(" ".join([f"p{i}"] * words) for i in range(count))


def test_short_transcript_is_one_window():
    windows = build_windows(_paragraphs(3), Words(), WindowConfig(context_window_limit=100))
    assert len(windows) == 1


def test_long_transcript_slides_with_overlap():
    # target 60 words, overlap 10 words: six 10-word paragraphs per window
    config = WindowConfig(context_window_limit=100, overlap_ratio=0.10)
    windows = build_windows(_paragraphs(12), Words(), config)

    assert len(windows) == 3
    assert all(Words().count_tokens(w) <= config.target_size for w in windows)
    # Each window after the first repeats the tail paragraph of the previous one
    assert windows[1].startswith("p5 ")
    assert windows[2].startswith("p10 ")
    assert windows[-1].endswith("p11")


def test_merge_keeps_most_confident_evidence_and_unique_findings():
    merged = merge_results([
        ExtractionResult(
            obtained=[EntryEvidence("erp", Confidence.LOW, "maybe SAP")],
            findings=[ExtractedFinding("Pain Points", "Excel reconciliations")]
        ),
        ExtractionResult(
            obtained=[EntryEvidence("erp", Confidence.HIGH, "SAP S/4HANA")],
            findings=[ExtractedFinding("Pain Points", "Excel reconciliations")]
        ),
    ])

    assert merged.evidence_by_id()["erp"].detail == "SAP S/4HANA"
    assert len(merged.findings) == 1


def test_service_runs_every_window():
    extractor = Recorder()
    service = ExtractionService(extractor, Words(), WindowConfig(context_window_limit=100))
    text = _paragraphs(11) + "\n\nWe use SAP"

    result = service.extract(text, DEFINITION)

    assert len(extractor.windows) == 2
    assert result.obtained_entry_ids == ["erp"]


def test_empty_transcript_skips_the_model():
    extractor = Recorder()
    result = ExtractionService(extractor, Words()).extract("   ", DEFINITION)

    assert result.obtained == [] and result.findings == []
    assert extractor.windows == []


def test_model_failure_is_extraction_unavailable():
    service = ExtractionService(Recorder(fail=True), Words())

    with pytest.raises(ExtractionUnavailable):
        service.extract("We use SAP", DEFINITION)
