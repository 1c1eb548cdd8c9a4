import os
import tempfile
from pathlib import Path
from typing import Tuple
from workshop_capture.core.config.settings import settings
from ..domain.interfaces import IFileSystem

class LocalFileSystem(IFileSystem):
    def __init__(self, root: Path = None):
        self.root = root or settings.ARTIFACTS_DIR

    def write_artifact(self, data: bytes, file_hash: str, extension: str) -> Tuple[Path, int]:
        """
        Writes to: {root}/{first_2_chars_of_hash}/{full_hash}.ext
        Folder sharding keeps directories small over many workshops.
        """
        sub_dir = self.root / file_hash[:2]
        sub_dir.mkdir(parents=True, exist_ok=True)

        destination = sub_dir / f"{file_hash}{extension.lower()}"

        if destination.exists():
            # Identical audio already on disk (e.g. two silent segments).
            return destination, destination.stat().st_size

        # Write beside the target then rename, so readers never see a half-written file.
        fd, tmp_name = tempfile.mkstemp(dir=sub_dir, suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, destination)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        return destination, len(data)
