"""
Capture Sinks
-------------
Receive the exact post-effect stream written to the audio output, for
offline inspection. Write failures are not recovered.
"""

from typing import List

import numpy as np
import soundfile as sf


class CaptureSink:
    """Receives every rendered block of int16 stereo frames"""

    def write(self, frames: np.ndarray):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class MemoryCapture(CaptureSink):
    """Keeps rendered blocks in memory"""

    def __init__(self):
        self.blocks: List[np.ndarray] = []

    def write(self, frames: np.ndarray):
        self.blocks.append(frames.copy())

    def samples(self) -> np.ndarray:
        if not self.blocks:
            return np.zeros((0, 2), dtype=np.int16)
        return np.concatenate(self.blocks)


class WavCapture(CaptureSink):
    """16 bit PCM WAV writer. Mono capture keeps the left channel."""

    def __init__(self, path, sample_rate: int, channels: int = 2):
        if channels not in (1, 2):
            raise ValueError(f"Capture supports 1 or 2 channels, got {channels}")
        self.channels = channels
        self.file = sf.SoundFile(str(path), mode='w', samplerate=sample_rate,
                                 channels=channels, subtype='PCM_16')

    def write(self, frames: np.ndarray):
        self.file.write(frames[:, :self.channels])

    def close(self):
        if not self.file.closed:
            self.file.close()
