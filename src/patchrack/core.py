"""
Core Synthesizer Engine
------------------------
Polyphonic voice management and the per-sample output chain:
voices -> sum -> clamp -> reverb -> saturation -> 16 bit stereo frames.
"""

from typing import Callable, Iterator, List, Optional, Tuple, Union

import numpy as np

from .audio import ADSR, EnvelopeState, Module, clamp, soft_clip, to_int16
from .capture import CaptureSink
from .config import AUDIO_CONFIG
from .debug import DEBUG
from .midi import Controller, NoteOff, NoteOn
from .rack import Rack
from .reverb import Freeverb

Source = Union[Module, Rack]


class Voice:
    """One sounding note: a signal source shaped by an ADSR envelope"""

    def __init__(self, source: Source, note: int, adsr: ADSR, gain: float = 1.0):
        self.source = source  # Owned exclusively by this voice
        self.note = note
        self.adsr = adsr
        self.gain = gain

    @property
    def state(self) -> EnvelopeState:
        return self.adsr.state

    @property
    def value(self) -> float:
        return self.adsr.value

    @property
    def is_done(self) -> bool:
        return self.adsr.is_done

    def get(self) -> float:
        # Envelope level is read before the envelope steps
        level = self.adsr.get()
        return level * self.source.get() * self.gain

    def note_off(self):
        self.adsr.note_off()

    def process_control(self, param: int, value: int):
        if isinstance(self.source, Rack):
            self.source.process_control(param, value)


VoiceFactory = Callable[[int, int], Voice]


class VoiceManager:
    """Fixed pool of voice slots with first-free allocation.

    Notes arriving while every slot is busy are dropped, never stolen.
    """

    def __init__(self, voice_factory: VoiceFactory, capacity: Optional[int] = None):
        self.voice_factory = voice_factory
        self.capacity = AUDIO_CONFIG.MAX_VOICES if capacity is None else capacity
        self.slots: List[Optional[Voice]] = [None] * self.capacity

    def __iter__(self) -> Iterator[Voice]:
        return (voice for voice in self.slots if voice is not None)

    @property
    def active_count(self) -> int:
        return sum(1 for voice in self.slots if voice is not None)

    @property
    def free_count(self) -> int:
        return self.capacity - self.active_count

    def _find_free_slot(self) -> Optional[int]:
        for i, voice in enumerate(self.slots):
            if voice is None:
                return i
        return None

    def note_on(self, note: int, velocity: int) -> Optional[int]:
        """Start a voice for `note`, returning its slot (None if dropped)"""
        if velocity == 0:
            self.note_off(note)
            return None

        idx = self._find_free_slot()
        if idx is None:
            DEBUG.log_warning(f"Voice overflow! Dropping note {note}")
            DEBUG.record_dropped_note()
            return None

        self.slots[idx] = self.voice_factory(note, velocity)
        DEBUG.log_debug(f"Note On: {note}, Velocity: {velocity}, Slot: {idx}")
        return idx

    def note_off(self, note: int):
        """Release every live voice playing `note`"""
        for voice in self:
            if voice.note == note:
                voice.note_off()

    def process_control(self, param: int, value: int):
        for voice in self:
            voice.process_control(param, value)

    def reset(self):
        """Silence and free every voice"""
        self.slots = [None] * self.capacity

    def get(self) -> float:
        """Sum one sample of every live voice, freeing voices that finished"""
        z = 0.0
        for i, voice in enumerate(self.slots):
            if voice is None:
                continue
            z += voice.get()
            if voice.is_done:
                self.slots[i] = None
        return z


class Synthesizer:
    """Turns a voice pool (or a single rack) into 16 bit stereo frames"""

    def __init__(self, source: Union[VoiceManager, Rack], reverb: Optional[Freeverb] = None,
                 capture: Optional[CaptureSink] = None):
        self.source = source
        self.reverb = reverb if reverb is not None else Freeverb.from_config()
        self.capture = capture
        self.limit = AUDIO_CONFIG.OUTPUT_LIMIT

    def handle_event(self, event):
        """Dispatch a decoded MIDI event"""
        if isinstance(event, Controller):
            DEBUG.log_debug(f"Controller: {event}")
            self.source.process_control(event.param, event.value)
        elif isinstance(event, (NoteOn, NoteOff)):
            if not isinstance(self.source, VoiceManager):
                DEBUG.log_debug(f"Ignoring {event}: source has no voices")
                return
            if isinstance(event, NoteOn):
                self.source.note_on(event.note, event.velocity)
            else:
                self.source.note_off(event.note)

    def next_sample(self) -> Tuple[float, float]:
        """Post-effect stereo sample as floats in (-1, 1)"""
        z = clamp(self.source.get(), -self.limit, self.limit)
        left, right = self.reverb.process(z, z)
        return soft_clip(left), soft_clip(right)

    def next_frame(self) -> Tuple[int, int]:
        left, right = self.next_sample()
        return to_int16(left), to_int16(right)

    def render(self, frames: int) -> np.ndarray:
        """Render `frames` interleaved stereo frames as int16, shape (frames, 2)"""
        start = DEBUG.start_measurement()
        out = np.empty((frames, 2), dtype=np.int16)
        for i in range(frames):
            out[i] = self.next_frame()

        if self.capture is not None:
            self.capture.write(out)

        if isinstance(self.source, VoiceManager):
            DEBUG.track_voices(self.source.active_count)
        DEBUG.monitor_signal('audio_out', out[:, 0] / 32768.0)
        DEBUG.end_measurement(start, f"render {frames} frames")
        return out
