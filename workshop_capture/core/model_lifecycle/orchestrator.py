# File: workshop_capture/core/model_lifecycle/orchestrator.py

import gc
import torch
import logging
from threading import Lock
from typing import Callable, Optional, Tuple
from .types import ModelType

logger = logging.getLogger(__name__)

class ModelOrchestrator:
    """
    Singleton VRAM Manager.
    Whisper and the extraction LLM do not fit side by side on a workstation GPU,
    so segments alternating between transcription and extraction swap them here.
    Models are keyed by (type, name) so switching Whisper sizes also reloads.
    """
    _instance = None
    _lock = Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(ModelOrchestrator, cls).__new__(cls)
                cls._instance._current_key = None
                cls._instance._loaded_model = None
        return cls._instance

    def request_model(self, model_type: ModelType, model_name: str, loader_func: Callable[[], object]):
        """
        Returns the loaded model for (model_type, model_name), evicting whatever else is resident.

        The lock is held for the whole load so two pipeline workers asking for
        different models at the same time cannot both end up in VRAM.
        """
        key = (model_type, model_name)
        with self._lock:
            if self._current_key == key and self._loaded_model is not None:
                return self._loaded_model

            if self._loaded_model is not None:
                self._evict()

            logger.info(f"Orchestrator: Loading {model_type.value}:{model_name}...")
            try:
                self._loaded_model = loader_func()
                self._current_key = key
                return self._loaded_model
            except Exception as e:
                logger.error(f"Failed to load {model_type.value}:{model_name}: {e}")
                raise

    def release(self):
        """Frees VRAM explicitly."""
        with self._lock:
            if self._loaded_model is not None:
                self._evict()

    def _evict(self):
        logger.info(f"Orchestrator: Evicting {self._current_key[0].value}:{self._current_key[1]}")
        self._loaded_model = None
        self._current_key = None

        gc.collect()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()

    @property
    def current(self) -> Optional[Tuple[ModelType, str]]:
        return self._current_key
