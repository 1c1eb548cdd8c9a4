import pytest

pytest.importorskip("torch")

from workshop_capture.core.model_lifecycle.orchestrator import ModelOrchestrator
from workshop_capture.core.model_lifecycle.types import ModelType


@pytest.fixture
def orchestrator():
    orchestrator = ModelOrchestrator()
    orchestrator.release()
    yield orchestrator
    orchestrator.release()


def test_same_model_is_loaded_once(orchestrator):
    loads = []

    def loader():
        loads.append("whisper")
        return object()

    first = orchestrator.request_model(ModelType.WHISPER, "base", loader)
    second = orchestrator.request_model(ModelType.WHISPER, "base", loader)

    assert first is second
    assert loads == ["whisper"]
    assert orchestrator.current == (ModelType.WHISPER, "base")


def test_switching_models_evicts_the_resident_one(orchestrator):
    orchestrator.request_model(ModelType.WHISPER, "base", object)
    llm = orchestrator.request_model(ModelType.EXTRACTION_LLM, "qwen", lambda: "llm")

    assert llm == "llm"
    assert orchestrator.current == (ModelType.EXTRACTION_LLM, "qwen")

    # Back to Whisper means a fresh load
    loads = []
    orchestrator.request_model(ModelType.WHISPER, "base", lambda: loads.append(1) or "whisper")
    assert loads == [1]


def test_failed_load_leaves_nothing_resident(orchestrator):
    def broken():
        raise RuntimeError("CUDA out of memory")

    with pytest.raises(RuntimeError):
        orchestrator.request_model(ModelType.EXTRACTION_LLM, "qwen", broken)
    assert orchestrator.current is None


def test_singleton():
    assert ModelOrchestrator() is ModelOrchestrator()
