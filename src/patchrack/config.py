"""
Configuration Management
------------------------
Defines the engine configuration surface: sample rate, voice pool size,
control-input layout, reference envelope and reverb tuning.

Values are read when DSP objects are constructed, so changes must be made
at process start before any Rack, Voice or Freeverb is built.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class AudioConfig:
    """Audio configuration parameters"""
    SAMPLE_RATE: int = 48000
    CHANNELS: int = 2
    BUFFER_SIZE: int = 512       # Sink buffer in frames
    PERIOD_SIZE: int = 128       # Largest block rendered per loop iteration
    MAX_VOICES: int = 256
    OUTPUT_LIMIT: float = 0.999  # Pre-reverb clamp
    POLL_TIMEOUT: float = 0.1    # Seconds to wait when nothing is ready
    POLL_INTERVAL: float = 0.001
    STATUS_INTERVAL: float = 10.0  # Seconds between status log lines


@dataclass
class MIDIConfig:
    """MIDI control input layout"""
    CONTROL_INPUTS: int = 8  # Control ports at the front of every rack
    CONTROL_MAX: int = 127


@dataclass
class EnvelopeConfig:
    """Reference voice envelope (seconds, sustain level 0-1)"""
    ATTACK: float = 0.2
    DECAY: float = 0.1
    SUSTAIN: float = 0.9
    RELEASE: float = 0.5


@dataclass
class ReverbConfig:
    """Freeverb parameters and tuning tables"""
    ROOM_SIZE: float = 0.4
    DAMPING: float = 0.5
    WET: float = 1.0
    WIDTH: float = 0.5
    DRY: float = 0.0

    FIXED_GAIN: float = 0.015
    SCALE_WET: float = 3.0
    SCALE_DAMPING: float = 0.4
    SCALE_ROOM: float = 0.28
    OFFSET_ROOM: float = 0.7
    ALLPASS_FEEDBACK: float = 0.5

    # Delay lengths in samples at REFERENCE_RATE
    REFERENCE_RATE: int = 44100
    STEREO_SPREAD: int = 23
    COMB_TUNING: Tuple[int, ...] = (1116, 1188, 1277, 1356, 1422, 1491, 1557, 1617)
    ALLPASS_TUNING: Tuple[int, ...] = (225, 341, 441, 556)


# Global configuration instances
AUDIO_CONFIG = AudioConfig()
MIDI_CONFIG = MIDIConfig()
ENVELOPE_CONFIG = EnvelopeConfig()
REVERB_CONFIG = ReverbConfig()
