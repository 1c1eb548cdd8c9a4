from abc import ABC, abstractmethod
from typing import Callable
import numpy as np

FrameCallback = Callable[[np.ndarray], None]

class ICaptureDevice(ABC):
    """
    A live input that pushes blocks of frames (shape: frames x channels) to a callback
    from its own thread until closed.
    """
    sample_rate: int
    channels: int

    @abstractmethod
    def open(self, on_frames: FrameCallback) -> None:
        """Starts capture. Raises DeviceUnavailable when permission is denied or no device exists."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stops capture. No callback runs after this returns."""
        pass

class ISegmentEncoder(ABC):
    extension: str

    @abstractmethod
    def encode(self, frames: np.ndarray, sample_rate: int) -> bytes:
        pass
