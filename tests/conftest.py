# File: tests/conftest.py

import os
import sys
import tempfile
import threading
import uuid
import pytest
import numpy as np
import sqlalchemy
from sqlalchemy import text
from sqlalchemy_utils import database_exists, create_database

# 1. Test environment: throwaway SQLite file and artifact dir, no stage deadline
os.environ.setdefault("USE_SQLITE", "true")
os.environ.setdefault("SQLITE_PATH", os.path.join(tempfile.gettempdir(), "workshop_capture_test.db"))
os.environ.setdefault("WORKSHOP_DATA_DIR", os.path.join(tempfile.gettempdir(), "workshop_capture_test_data"))
os.environ.setdefault("STAGE_TIMEOUT_SECONDS", "0")

# 2. Add project root to path
sys.path.append(os.getcwd())

from workshop_capture.core.common.enums import Confidence, Importance
from workshop_capture.core.database.connection import engine as TEST_ENGINE
from workshop_capture.core.database.schema import create_all
from workshop_capture.core.errors import DeviceUnavailable, TranscriptionUnavailable
from workshop_capture.core.events.bus import EventBus
from workshop_capture.core.events.types import Event
from workshop_capture.features.answers.data.repository import SqlAnswerRepo
from workshop_capture.features.capture.domain.interfaces import ICaptureDevice, ISegmentEncoder
from workshop_capture.features.checklist.data.repository import SqlChecklistStore, SqlDefinitionRepo
from workshop_capture.features.checklist.domain.interfaces import IChecklistGenerator
from workshop_capture.features.checklist.domain.models import ChecklistEntry, GeneratedChecklist
from workshop_capture.features.checklist.service.aggregator import ChecklistAggregator
from workshop_capture.features.checklist.service.definitions import ChecklistDefinitionService
from workshop_capture.features.extraction.domain.interfaces import IChecklistExtractor, ITokenizer
from workshop_capture.features.extraction.domain.models import EntryEvidence, ExtractedFinding, ExtractionResult
from workshop_capture.features.extraction.service.api import ExtractionService
from workshop_capture.features.segment_pipeline.data.repository import SqlSegmentRepo
from workshop_capture.features.segment_pipeline.domain.models import PipelineServices
from workshop_capture.features.session.service.controller import SessionController
from workshop_capture.features.storage.data.local_fs import LocalFileSystem
from workshop_capture.features.storage.domain.interfaces import IAudioStore
from workshop_capture.features.storage.service.api import StorageService
from workshop_capture.features.transcription.domain.interfaces import ITranscriptionService


# --- Fakes for the outside world (sound card, ASR, LLM) ---

class FakeCaptureDevice(ICaptureDevice):
    """Pushes synthetic audio on demand instead of a sound card thread."""

    def __init__(self, sample_rate=100, channels=1, unavailable=False, fail_on_close=False):
        self.sample_rate = sample_rate
        self.channels = channels
        self.unavailable = unavailable
        self.fail_on_close = fail_on_close
        self.is_open = False
        self._on_frames = None
        self._cursor = 0

    def open(self, on_frames):
        if self.unavailable:
            raise DeviceUnavailable("Microphone permission denied")
        self._on_frames = on_frames
        self.is_open = True

    def close(self):
        self.is_open = False
        if self.fail_on_close:
            raise RuntimeError("Stream stop failed")

    def feed(self, seconds, block_seconds=1.0):
        total = int(round(seconds * self.sample_rate))
        block = max(1, int(round(block_seconds * self.sample_rate)))
        sent = 0
        while sent < total:
            n = min(block, total - sent)
            # Distinct content per frame so no two segments hash the same
            ramp = np.arange(self._cursor, self._cursor + n, dtype=np.float32) % 997 / 997
            self._on_frames(np.repeat(ramp.reshape(-1, 1), self.channels, axis=1))
            self._cursor += n
            sent += n


class FakeEncoder(ISegmentEncoder):
    extension = ".raw"

    def encode(self, frames, sample_rate):
        return frames.astype(np.float32).tobytes()


class IndexedAudioStore(IAudioStore):
    """Real storage, plus a record of which segment each ref belongs to."""

    def __init__(self, inner: IAudioStore):
        self.inner = inner
        self.index_of = {}

    def store(self, request):
        ref = self.inner.store(request)
        self.index_of[ref.id] = request.segment_index
        return ref

    def resolve(self, segment_ref_id):
        return self.inner.resolve(segment_ref_id)


class FakeTranscriptionService(ITranscriptionService):
    def __init__(self, audio: IndexedAudioStore, texts=None):
        self.audio = audio
        self.texts = texts or {}
        self.failing = set()
        self.calls = []

    def transcribe(self, segment_ref_id):
        index = self.audio.index_of[segment_ref_id]
        self.calls.append(index)
        if index in self.failing:
            raise TranscriptionUnavailable(f"ASR backend down for segment {index}")
        return self.texts.get(index, "")


class FakeExtractor(IChecklistExtractor):
    """
    Keyword matcher standing in for the LLM: an entry is obtained when its keyword
    occurs in the text. Lines starting with 'pain:' become findings.
    """

    def __init__(self, keywords=None):
        self.keywords = keywords or {}
        self.failing = False
        self.calls = 0
        self._lock = threading.Lock()

    def extract(self, text, definition):
        with self._lock:
            self.calls += 1
        if self.failing:
            raise RuntimeError("LLM out of memory")

        lowered = text.lower()
        obtained = [
            EntryEvidence(entry_id, Confidence.HIGH, f"mentions {keyword}")
            for entry_id, keyword in self.keywords.items()
            if definition.get(entry_id) and keyword in lowered
        ]
        findings = [
            ExtractedFinding("Pain Points", line.split(":", 1)[1].strip())
            for line in text.splitlines()
            if line.lower().startswith("pain:")
        ]
        return ExtractionResult(obtained=obtained, findings=findings)


class FakeGenerator(IChecklistGenerator):
    def __init__(self, descriptions=("Budget", "Timeline")):
        self.descriptions = descriptions
        self.calls = 0
        self.failing = False

    def generate_checklist(self, context):
        self.calls += 1
        if self.failing:
            raise ValueError("Model returned an empty checklist.")
        return GeneratedChecklist(
            entries=tuple(
                ChecklistEntry(f"item-{i + 1:02d}", d, Importance.CRITICAL)
                for i, d in enumerate(self.descriptions)
            ),
            summary=f"Generated for {context.question_id} (call {self.calls})"
        )


class WordTokenizer(ITokenizer):
    def count_tokens(self, text):
        return len(text.split())


class PipelineHarness:
    """Real repositories and services on the test database; fakes at the edges."""

    def __init__(self, artifacts_dir):
        self.bus = EventBus()
        self.events = []
        self.bus.subscribe(Event, self.events.append)

        self.answers = SqlAnswerRepo()
        self.store = SqlChecklistStore()
        self.segments = SqlSegmentRepo()
        self.audio = IndexedAudioStore(StorageService(fs=LocalFileSystem(artifacts_dir)))
        self.transcription = FakeTranscriptionService(self.audio)
        self.extractor = FakeExtractor()
        self.generator = FakeGenerator()
        self.aggregator = ChecklistAggregator(self.store, self.answers, self.bus)
        self.definitions = ChecklistDefinitionService(SqlDefinitionRepo(), generator=self.generator)

        self.services = PipelineServices(
            storage=self.audio,
            transcription=self.transcription,
            extraction=ExtractionService(self.extractor, WordTokenizer()),
            aggregator=self.aggregator,
            answers=self.answers,
            segments=self.segments,
            bus=self.bus
        )

    def define(self, question_id, items):
        """items: (entry_id, importance, keyword) triples."""
        entries = [ChecklistEntry(entry_id, f"Ask about {keyword}", importance) for entry_id, importance, keyword in items]
        self.extractor.keywords.update({entry_id: keyword for entry_id, _, keyword in items})
        return self.definitions.define(question_id, entries)

    def controller(self, question_id="q-1", device=None):
        self.device = device or FakeCaptureDevice()
        return SessionController(
            question_id=question_id,
            services=self.services,
            definitions=self.definitions,
            store=self.store,
            device=self.device,
            encoder=FakeEncoder(),
            max_workers=4,
            stage_timeout=0
        )

    def events_of(self, event_type):
        return [e for e in list(self.events) if isinstance(e, event_type)]


# --- Database fixtures ---

@pytest.fixture(scope="session", autouse=True)
def global_setup():
    """
    Runs once per test session.
    Ensures the DB exists and every table is registered.
    """
    if not database_exists(TEST_ENGINE.url):
        create_database(TEST_ENGINE.url)

    create_all(bind=TEST_ENGINE)
    yield


@pytest.fixture(scope="function", autouse=True)
def clean_db(global_setup):
    """
    Runs before EVERY test.
    Detects DB type and cleans tables appropriately.
    """
    with TEST_ENGINE.connect() as conn:
        trans = conn.begin()
        table_names = sqlalchemy.inspect(TEST_ENGINE).get_table_names()

        if "sqlite" in str(TEST_ENGINE.url):
            conn.execute(text("PRAGMA foreign_keys = OFF;"))
            for table in table_names:
                conn.execute(text(f'DELETE FROM "{table}";'))
            conn.execute(text("PRAGMA foreign_keys = ON;"))
        else:
            for table in table_names:
                conn.execute(text(f'TRUNCATE TABLE "{table}" CASCADE;'))

        trans.commit()

    yield


# --- Component fixtures ---

@pytest.fixture
def device():
    return FakeCaptureDevice()


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def harness(tmp_path):
    return PipelineHarness(tmp_path / "artifacts")


@pytest.fixture
def recording_id():
    return uuid.uuid4()


@pytest.fixture
def unavailable_device():
    return FakeCaptureDevice(unavailable=True)


@pytest.fixture
def failing_close_device():
    return FakeCaptureDevice(fail_on_close=True)
