# File: workshop_capture/core/database/base.py

from sqlalchemy.orm import declarative_base

# The shared registry. Answers, Segments, Stored audio and Checklist tables inherit from this.
Base = declarative_base()
