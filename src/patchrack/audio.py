"""
Audio Processing Modules
------------------------
Per-sample DSP units that can be registered in a Rack:
- Phase: ramp generator driving every oscillator
- Oscillators: Sine, Saw, Square, Square0, Triangle
- Arithmetic: Avg, Avg4, Mult, Add, Scale, LinMap
- FeedbackDelay and the KarplusStrong plucked string
- ADSR: linear envelope state machine used by voices
- Output shaping helpers for the final sample stage

Every module produces one sample per get() call and accepts values on
numbered input slots through set_input(). Writes to slots a module does not
declare are ignored.
"""

import copy
import math
from enum import Enum
from typing import Dict, Optional, Type

import numpy as np

from .config import AUDIO_CONFIG

TWO_PI = 2.0 * math.pi


def _rate(sample_rate: Optional[int]) -> float:
    return float(sample_rate or AUDIO_CONFIG.SAMPLE_RATE)


class UnknownModuleError(KeyError):
    """Raised when a module kind is not in the registry"""


class Module:
    """Base class for every rack module"""

    inputs = 0  # Number of input slots

    def get(self) -> float:
        raise NotImplementedError

    def set_input(self, slot: int, value: float):
        pass

    def accepts(self, slot: int) -> bool:
        return 0 <= slot < self.inputs

    def clone(self) -> 'Module':
        """Independent copy with its own oscillator/filter state"""
        return copy.deepcopy(self)


class Phase(Module):
    """Ramp from 0 to 1, `freq` times per second"""

    inputs = 1

    def __init__(self, freq: float, sample_rate: Optional[int] = None):
        self.sample_rate = _rate(sample_rate)
        self.value = 0.0
        self.step = freq / self.sample_rate

    def get(self) -> float:
        self.value += self.step
        # Subtract instead of taking a modulo so high frequencies don't drift
        if self.value > 1.0:
            self.value -= 1.0
        elif self.value < 0.0:
            # Negative frequencies from an FM cable run the ramp backwards
            self.value += 1.0
        return self.value

    def set_freq(self, freq: float):
        """Retune without resetting the phase"""
        self.step = freq / self.sample_rate

    def set_input(self, slot: int, value: float):
        if slot == 0:
            self.set_freq(value)


class PhaseOscillator(Module):
    """Oscillator whose waveform is a pure function of a Phase ramp.

    Input slot 0 sets the frequency in Hz.
    """

    inputs = 1

    def __init__(self, freq: float, sample_rate: Optional[int] = None):
        self.phase = Phase(freq, sample_rate)

    @staticmethod
    def shape(p: float) -> float:
        raise NotImplementedError

    def get(self) -> float:
        return self.shape(self.phase.get())

    def set_input(self, slot: int, value: float):
        if slot == 0:
            self.phase.set_freq(value)


class Sine(PhaseOscillator):
    @staticmethod
    def shape(p: float) -> float:
        return math.sin(p * TWO_PI)


class Saw(PhaseOscillator):
    @staticmethod
    def shape(p: float) -> float:
        return p * 2.0 - 1.0


class Square(PhaseOscillator):
    @staticmethod
    def shape(p: float) -> float:
        return 1.0 if p > 0.5 else -1.0


class Square0(PhaseOscillator):
    """Unipolar square, 0 or 1"""

    @staticmethod
    def shape(p: float) -> float:
        return 1.0 if p > 0.5 else 0.0


class Triangle(PhaseOscillator):
    @staticmethod
    def shape(p: float) -> float:
        saw = p * 2.0 - 1.0
        return abs(saw * 2.0) - 1.0


class Combiner(Module):
    """Holds the last value of each slot and recomputes on every write"""

    def __init__(self):
        self.values = [0.0] * self.inputs
        self.res = 0.0

    def combine(self) -> float:
        raise NotImplementedError

    def get(self) -> float:
        return self.res

    def set_input(self, slot: int, value: float):
        if self.accepts(slot):
            self.values[slot] = value
            self.res = self.combine()


class Avg(Combiner):
    inputs = 2

    def combine(self) -> float:
        return (self.values[0] + self.values[1]) * 0.5


class Avg4(Combiner):
    inputs = 4

    def combine(self) -> float:
        return sum(self.values) * 0.25


class Mult(Combiner):
    inputs = 2

    def combine(self) -> float:
        return self.values[0] * self.values[1]


class Add(Combiner):
    inputs = 2

    def combine(self) -> float:
        return self.values[0] + self.values[1]


class Scale(Module):
    inputs = 1

    def __init__(self, factor: float):
        self.factor = factor
        self.res = 0.0

    def get(self) -> float:
        return self.res

    def set_input(self, slot: int, value: float):
        if slot == 0:
            self.res = self.factor * value


class LinMap(Module):
    """Map from -1..1 to lo..hi"""

    inputs = 1

    def __init__(self, lo: float, hi: float):
        self.lo = lo
        self.range = (hi - lo) * 0.5
        self.res = 0.0

    def get(self) -> float:
        return self.res

    def set_input(self, slot: int, value: float):
        if slot == 0:
            self.res = self.lo + (value + 1.0) * self.range


class FeedbackDelay(Module):
    """Delay line feeding `gain` times its output back into itself.

    Slot 0 is the dry input, added to the feedback on every write.
    """

    inputs = 1

    def __init__(self, length: float, gain: float, sample_rate: Optional[int] = None):
        self.size = int(length * _rate(sample_rate))
        if self.size < 1:
            raise ValueError(f"Delay length {length}s is shorter than one sample")
        self.buffer = np.zeros(self.size)
        self.gain = gain
        self.index = 0
        self.input = 0.0

    def get(self) -> float:
        write_index = self.index - 1 if self.index > 0 else self.size - 1

        res = float(self.buffer[self.index])
        self.buffer[write_index] = clamp(res * self.gain + self.input, -1.0, 1.0)

        self.index += 1
        if self.index >= self.size:
            self.index = 0

        return res

    def set_input(self, slot: int, value: float):
        if slot == 0:
            self.input = value


class KarplusStrong(Module):
    """Plucked string: a noise burst recirculated through an averaging filter.

    Args:
        freq: Pitch in Hz, sets the wavetable length
        blend: Probability that a sample keeps its sign (1.0 = guitar-like,
            0.5 = drum-like)
        stretch: Decay stretch factor; the averaging filter is applied with
            probability 1/stretch
        seed: Seed for the noise burst and the stochastic filter
    """

    def __init__(self, freq: float, blend: float = 1.0, stretch: float = 1.0,
                 seed: Optional[int] = None, sample_rate: Optional[int] = None):
        if freq <= 0:
            raise ValueError(f"KarplusStrong frequency must be positive, got {freq}")
        if stretch < 1.0:
            raise ValueError(f"KarplusStrong stretch must be >= 1, got {stretch}")
        self.size = max(1, int(_rate(sample_rate) / freq + 0.5))
        self.rng = np.random.default_rng(seed)
        self.wavetable = np.where(self.rng.random(self.size) < 0.5, 1.0, -1.0)
        self.index = 0
        self.blend = blend
        self.stretch = 1.0 / stretch

    def _chance(self, p: float) -> bool:
        return p >= 1.0 or self.rng.random() < p

    def prev(self) -> float:
        return float(self.wavetable[self.index - 1])  # index -1 wraps to the end

    def current(self) -> float:
        return float(self.wavetable[self.index])

    def get(self) -> float:
        if self._chance(self.stretch):
            value = (self.current() + self.prev()) * 0.5
        else:
            value = self.current()
        if not self._chance(self.blend):
            value = -value

        self.wavetable[self.index - 1] = value

        self.index += 1
        if self.index == self.size:
            self.index = 0

        return value


# Closed registry of module kinds, used to build patches by name
MODULE_TYPES: Dict[str, Type[Module]] = {
    'phase': Phase,
    'sine': Sine,
    'saw': Saw,
    'square': Square,
    'square0': Square0,
    'triangle': Triangle,
    'avg': Avg,
    'avg4': Avg4,
    'mult': Mult,
    'add': Add,
    'scale': Scale,
    'linmap': LinMap,
    'feedback_delay': FeedbackDelay,
    'karplus_strong': KarplusStrong,
}


def create_module(kind: str, *args, **kwargs) -> Module:
    """Instantiate a registered module kind"""
    try:
        cls = MODULE_TYPES[kind]
    except KeyError:
        raise UnknownModuleError(kind) from None
    return cls(*args, **kwargs)


class EnvelopeState(Enum):
    ATTACKING = 'attacking'
    DECAYING = 'decaying'
    SUSTAINING = 'sustaining'
    RELEASING = 'releasing'
    DONE = 'done'


def _slope(delta: float, steps: float) -> float:
    return delta / steps if steps > 0 else delta


class ADSR:
    """Linear attack-decay-sustain-release envelope.

    get() returns the current level and then advances one sample. A stage
    ends when its target level is crossed or after its duration in samples,
    whichever comes first, and the level is clamped to the target.
    """

    def __init__(self, attack: float, decay: float, sustain: float, release: float,
                 sample_rate: Optional[int] = None):
        if not 0.0 <= sustain <= 1.0:
            raise ValueError(f"Sustain level must be within [0, 1], got {sustain}")
        if min(attack, decay, release) < 0.0:
            raise ValueError("Envelope durations must not be negative")

        rate = _rate(sample_rate)
        self.attack_steps = attack * rate
        self.decay_steps = decay * rate
        self.release_steps = release * rate

        self.attack_slope = _slope(1.0, self.attack_steps)
        self.decay_slope = _slope(-(1.0 - sustain), self.decay_steps)
        self.release_slope = _slope(-sustain, self.release_steps)  # resized at note_off
        self.sustain = sustain

        self.state = EnvelopeState.ATTACKING
        self.value = 0.0
        self.elapsed = 0  # Samples spent in the current stage

    @property
    def is_done(self) -> bool:
        return self.state is EnvelopeState.DONE

    def note_off(self):
        if self.state in (EnvelopeState.RELEASING, EnvelopeState.DONE):
            return
        self.release_slope = _slope(-self.value, self.release_steps)
        self.state = EnvelopeState.RELEASING
        self.elapsed = 0

    def get(self) -> float:
        level = self.value
        self._step()
        return level

    def _enter(self, state: EnvelopeState, value: float):
        self.state = state
        self.value = value
        self.elapsed = 0

    def _step(self):
        state = self.state
        if state is EnvelopeState.ATTACKING:
            self.value += self.attack_slope
            self.elapsed += 1
            if self.value >= 1.0 or self.elapsed >= self.attack_steps:
                self._enter(EnvelopeState.DECAYING, 1.0)
        elif state is EnvelopeState.DECAYING:
            self.value += self.decay_slope
            self.elapsed += 1
            if self.value <= self.sustain or self.elapsed >= self.decay_steps:
                self._enter(EnvelopeState.SUSTAINING, self.sustain)
        elif state is EnvelopeState.RELEASING:
            self.value += self.release_slope
            self.elapsed += 1
            if self.value <= 0.0 or self.elapsed >= self.release_steps:
                self._enter(EnvelopeState.DONE, 0.0)
        # SUSTAINING holds, DONE is terminal


def clamp(value: float, lo: float, hi: float) -> float:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def soft_clip(value: float) -> float:
    """Exponential saturation into (-1, 1)"""
    if value > 0.0:
        return 1.0 - math.exp(-value)
    return -1.0 + math.exp(value)


def to_int16(value: float) -> int:
    """Convert a [-1, 1] sample to signed 16 bit, saturating"""
    return int(clamp(value * 32768.0, -32768.0, 32767.0))
