"""
Audio Output Sink
-----------------
Interface of the audio output consumed by the real-time loop, and its
sounddevice implementation.

The loop only needs to know how many frames fit without blocking, to write
int16 interleaved stereo frames, and to query/recover the stream state:

    PREPARED  -> start()
    XRUN      -> prepare()
    SUSPENDED -> resume()
    UNKNOWN   -> fatal
"""

from enum import Enum
from typing import Optional, Union

import numpy as np

from .config import AUDIO_CONFIG
from .debug import DEBUG


class TransportError(RuntimeError):
    """Fatal failure of the audio or MIDI transport"""


class SinkState(Enum):
    RUNNING = 'running'
    PREPARED = 'prepared'
    XRUN = 'xrun'
    SUSPENDED = 'suspended'
    UNKNOWN = 'unknown'


class AudioSink:
    """Interface of an audio output the loop can feed without blocking"""

    def available(self) -> int:
        """Frames that can be written without blocking"""
        raise NotImplementedError

    def write(self, frames: np.ndarray):
        raise NotImplementedError

    def state(self) -> SinkState:
        raise NotImplementedError

    def start(self):
        raise NotImplementedError

    def prepare(self):
        raise NotImplementedError

    def resume(self):
        raise NotImplementedError


class SoundDeviceSink(AudioSink):
    """AudioSink over a sounddevice.RawOutputStream (int16, stereo)"""

    def __init__(self, stream):
        self.stream = stream
        self.underflowed = False

    @classmethod
    def open(cls, device: Optional[Union[int, str]] = None, sample_rate: Optional[int] = None,
             buffer_size: Optional[int] = None) -> 'SoundDeviceSink':
        # PortAudio is only loaded when a real device is requested
        import sounddevice as sd

        sample_rate = sample_rate or AUDIO_CONFIG.SAMPLE_RATE
        buffer_size = buffer_size or AUDIO_CONFIG.BUFFER_SIZE
        try:
            stream = sd.RawOutputStream(
                device=device,
                channels=AUDIO_CONFIG.CHANNELS,
                samplerate=sample_rate,
                blocksize=buffer_size // 4,
                dtype='int16',
            )
        except sd.PortAudioError as e:
            raise TransportError(f"Could not open audio output: {e}") from e
        DEBUG.log_info(f"Opened audio output {stream.device} at {stream.samplerate} Hz, "
                       f"latency {stream.latency * 1000:.1f}ms")
        return cls(stream)

    def available(self) -> int:
        if self.stream.closed:
            return 0
        return self.stream.write_available

    def write(self, frames: np.ndarray):
        if self.stream.write(np.ascontiguousarray(frames, dtype=np.int16).tobytes()):
            self.underflowed = True

    def state(self) -> SinkState:
        if self.stream.closed:
            return SinkState.UNKNOWN
        if self.underflowed:
            return SinkState.XRUN
        if not self.stream.active:
            return SinkState.PREPARED
        return SinkState.RUNNING

    def start(self):
        self.stream.start()

    def prepare(self):
        # PortAudio keeps running through an underflow; only the flag needs clearing
        self.underflowed = False

    def resume(self):
        self.stream.start()

    def close(self):
        if not self.stream.closed:
            self.stream.stop()
            self.stream.close()


def select_output_device(name_hint: Optional[str] = None) -> Optional[int]:
    """Pick an output device by name substring, or the default device"""
    import sounddevice as sd

    devices = sd.query_devices()
    DEBUG.log_info("Available Audio Output Devices:")
    for i, device in enumerate(devices):
        if device['max_output_channels'] > 0:
            DEBUG.log_info(f"{i}: {device['name']}")

    if name_hint:
        for i, device in enumerate(devices):
            if name_hint.lower() in device['name'].lower() and device['max_output_channels'] > 0:
                DEBUG.log_info(f"Selected audio device: {device['name']}")
                return i
        DEBUG.log_warning(f"No output device matching '{name_hint}', using default")

    return None
