# File: workshop_capture/core/config/settings.py

import os
from pathlib import Path


class Settings:
    # --- Paths ---
    # workshop_capture/core/config/settings.py -> config -> core -> workshop_capture -> ROOT
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent
    DATA_DIR: Path = Path(os.getenv("WORKSHOP_DATA_DIR", str(BASE_DIR / "data")))
    ARTIFACTS_DIR: Path = DATA_DIR / "artifacts"
    MODELS_DIR: Path = BASE_DIR / "models"

    # --- Database ---
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "workshop_capture")
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", "./workshop_capture.db")

    @property
    def DATABASE_URL(self) -> str:
        # SQLite only when explicitly requested (local runs and the test suite).
        if os.getenv("USE_SQLITE", "false").lower() == "true":
            return f"sqlite:///{self.SQLITE_PATH}"

        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # --- Capture ---
    CAPTURE_SAMPLE_RATE: int = int(os.getenv("CAPTURE_SAMPLE_RATE", "16000"))
    CAPTURE_CHANNELS: int = int(os.getenv("CAPTURE_CHANNELS", "1"))

    # Segment length is fixed for the lifetime of a recording once it starts.
    SEGMENT_SECONDS: int = int(os.getenv("SEGMENT_SECONDS", "300"))
    SEGMENT_MIN_SECONDS: int = int(os.getenv("SEGMENT_MIN_SECONDS", "60"))
    SEGMENT_MAX_SECONDS: int = int(os.getenv("SEGMENT_MAX_SECONDS", "900"))

    # --- Pipeline ---
    PIPELINE_MAX_WORKERS: int = int(os.getenv("PIPELINE_MAX_WORKERS", "16"))
    # 0 disables the per-stage deadline.
    STAGE_TIMEOUT_SECONDS: float = float(os.getenv("STAGE_TIMEOUT_SECONDS", "600"))

    # --- Model Configuration ---
    WHISPER_MODEL_NAME: str = os.getenv("WHISPER_MODEL_NAME", "large-v3")
    WHISPER_DEVICE: str = "cuda" if os.getenv("USE_CUDA", "true").lower() == "true" else "cpu"
    EXTRACTION_MODEL_PATH: str = os.getenv("EXTRACTION_MODEL_PATH", "Qwen/Qwen2.5-7B-Instruct")
    CONTEXT_WINDOW_LIMIT: int = int(os.getenv("CONTEXT_WINDOW_LIMIT", "8192"))

    @property
    def stage_timeout(self):
        return self.STAGE_TIMEOUT_SECONDS if self.STAGE_TIMEOUT_SECONDS > 0 else None

    def ensure_dirs(self):
        """Creates necessary data directories if they don't exist."""
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)
        self.ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
        self.MODELS_DIR.mkdir(parents=True, exist_ok=True)


settings = Settings()
