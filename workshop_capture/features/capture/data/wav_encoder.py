import io
import numpy as np
import soundfile as sf
from ..domain.interfaces import ISegmentEncoder

class WavSegmentEncoder(ISegmentEncoder):
    """16-bit PCM WAV: lossless, and Whisper reads it without transcoding."""
    extension = ".wav"

    def encode(self, frames: np.ndarray, sample_rate: int) -> bytes:
        buffer = io.BytesIO()
        sf.write(buffer, frames, sample_rate, format="WAV", subtype="PCM_16")
        return buffer.getvalue()
