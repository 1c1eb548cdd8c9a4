import logging
import sounddevice as sd
from workshop_capture.core.config.settings import settings
from workshop_capture.core.errors import DeviceUnavailable
from ..domain.interfaces import FrameCallback, ICaptureDevice

logger = logging.getLogger(__name__)

class SoundDeviceMicrophone(ICaptureDevice):
    """
    PortAudio input stream. Blocks arrive on the PortAudio thread every ~100ms.
    """
    def __init__(self, sample_rate: int = None, channels: int = None, device=None, block_seconds: float = 0.1):
        self.sample_rate = sample_rate or settings.CAPTURE_SAMPLE_RATE
        self.channels = channels or settings.CAPTURE_CHANNELS
        self.device = device
        self.blocksize = int(self.sample_rate * block_seconds)
        self._stream = None

    def open(self, on_frames: FrameCallback) -> None:
        def callback(indata, frames, time_info, status):
            if status:
                logger.warning(f"Input stream status: {status}")
            # PortAudio reuses the buffer after the callback returns
            on_frames(indata.copy())

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=self.blocksize,
                device=self.device,
                callback=callback
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise DeviceUnavailable(f"Cannot open input device: {e}") from e

        logger.info(f"Microphone open: {self.sample_rate} Hz, {self.channels} ch")

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
        finally:
            self._stream.close()
            self._stream = None
        logger.info("Microphone closed")
