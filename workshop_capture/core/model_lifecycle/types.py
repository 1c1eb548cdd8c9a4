# File: workshop_capture/core/model_lifecycle/types.py

from enum import Enum

class ModelType(str, Enum):
    WHISPER = "whisper"
    EXTRACTION_LLM = "extraction_llm"
