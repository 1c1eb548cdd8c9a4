# File: workshop_capture/core/database/schema.py

import logging
from .base import Base
from .connection import engine

logger = logging.getLogger(__name__)


def register_models():
    """Imports every feature's SQL models so they are attached to Base.metadata."""
    import workshop_capture.features.storage.data.sql_models  # noqa: F401
    import workshop_capture.features.answers.data.sql_models  # noqa: F401
    import workshop_capture.features.segment_pipeline.data.sql_models  # noqa: F401
    import workshop_capture.features.checklist.data.sql_models  # noqa: F401


def create_all(bind=None):
    register_models()
    Base.metadata.create_all(bind=bind or engine)
    logger.info(f"Schema ready: {sorted(Base.metadata.tables)}")
