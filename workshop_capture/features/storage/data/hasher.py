import hashlib
from ..domain.interfaces import IHasher

class SHA256Hasher(IHasher):
    def calculate_sha256(self, data: bytes) -> str:
        # Segments live in memory already (a few MB of PCM), so hash in one pass.
        return hashlib.sha256(data).hexdigest()
