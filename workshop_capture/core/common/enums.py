# File: workshop_capture/core/common/enums.py

from enum import Enum, unique

@unique
class PipelineStatus(str, Enum):
    QUEUED = "queued"
    STORING = "storing"
    TRANSCRIBING = "transcribing"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStatus.DONE, PipelineStatus.FAILED)

@unique
class Importance(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    NICE_TO_HAVE = "nice-to-have"

    @property
    def blocks_progress(self) -> bool:
        return self in (Importance.CRITICAL, Importance.IMPORTANT)

@unique
class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]

@unique
class AnswerStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

@unique
class ControllerState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    DRAINING = "draining"
