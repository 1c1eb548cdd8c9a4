import pytest
from workshop_capture.core.common.enums import Importance
from workshop_capture.core.errors import ChecklistUnavailable
from workshop_capture.features.checklist.data.repository import SqlDefinitionRepo
from workshop_capture.features.checklist.domain.models import ChecklistDefinition, ChecklistEntry, QuestionContext
from workshop_capture.features.checklist.service.definitions import ChecklistDefinitionService


@pytest.fixture
def context():
    return QuestionContext(
        question_id="q-7",
        question_text="How do you close the month today?",
        is_critical=True,
        entity_name="Finance",
        already_obtained=("Number of legal entities",)
    )


def test_generated_once_then_reused(harness, context):
    first = harness.definitions.get_or_generate(context)
    second = harness.definitions.get_or_generate(context)

    assert harness.generator.calls == 1
    assert first == second
    assert first.version == 1
    assert [e.description for e in first.entries] == ["Budget", "Timeline"]


def test_force_creates_a_new_version_and_keeps_the_old(harness, context):
    first = harness.definitions.get_or_generate(context)
    regenerated = harness.definitions.get_or_generate(context, force=True)

    assert harness.generator.calls == 2
    assert regenerated.version == 2
    assert harness.definitions.current("q-7").version == 2
    assert first.summary != regenerated.summary


def test_generation_failure(harness, context):
    harness.generator.failing = True

    with pytest.raises(ChecklistUnavailable):
        harness.definitions.get_or_generate(context)
    assert harness.definitions.current("q-7") is None


def test_without_generator():
    service = ChecklistDefinitionService(SqlDefinitionRepo())
    with pytest.raises(ChecklistUnavailable):
        service.get_or_generate(QuestionContext("q-1", "Anything?"))


def test_manual_definition_round_trips_importance(harness):
    entries = [
        ChecklistEntry("erp", "Current ERP", Importance.CRITICAL, "Which ERP do you run?"),
        ChecklistEntry("tz", "Time zones", Importance.NICE_TO_HAVE),
    ]
    harness.definitions.define("q-2", entries, summary="Systems landscape")

    stored = harness.definitions.current("q-2")
    assert stored.entries == tuple(entries)
    assert stored.summary == "Systems landscape"
    assert stored.get("tz").importance == Importance.NICE_TO_HAVE


def test_definition_rejects_duplicate_ids():
    entry = ChecklistEntry("a", "A", Importance.CRITICAL)
    with pytest.raises(ValueError):
        ChecklistDefinition("q-1", 1, (entry, entry))


def test_empty_manual_definition(harness):
    with pytest.raises(ValueError):
        harness.definitions.define("q-3", [])
