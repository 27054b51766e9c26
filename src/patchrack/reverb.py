"""
Reverberation Engine
--------------------
Freeverb-style stereo reverb: 8 parallel damped comb filters per channel
followed by 4 cascaded all-pass filters per channel.

Delay lengths are tuned for 44.1 kHz and rescaled to the engine sample
rate; the right channel uses lengths offset by a fixed stereo spread.
"""

from typing import Optional, Tuple

import numpy as np

from .config import AUDIO_CONFIG, REVERB_CONFIG, ReverbConfig


def convert_length(length: int, sample_rate: float,
                   reference_rate: int = REVERB_CONFIG.REFERENCE_RATE) -> int:
    """Rescale a delay length given at the reference rate"""
    return int(length * sample_rate / reference_rate)


class DelayLine:
    """Circular buffer read at the cursor and written just before advancing"""

    def __init__(self, length: int):
        if length < 1:
            raise ValueError(f"Delay line needs at least one slot, got {length}")
        self.buffer = np.zeros(length)
        self.index = 0

    def __len__(self) -> int:
        return len(self.buffer)

    def read(self) -> float:
        return float(self.buffer[self.index])

    def write(self, value: float):
        self.buffer[self.index] = value
        self.index += 1
        if self.index >= len(self.buffer):
            self.index = 0


class AllPass:
    """Flat-magnitude diffuser"""

    def __init__(self, delay_length: int, feedback: float = REVERB_CONFIG.ALLPASS_FEEDBACK):
        self.delay_line = DelayLine(delay_length)
        self.feedback = feedback

    def process(self, value: float) -> float:
        delayed = self.delay_line.read()
        output = -value + delayed
        self.delay_line.write(value + delayed * self.feedback)
        return output


class Comb:
    """Feedback delay with a one-pole low-pass in the feedback path"""

    def __init__(self, delay_length: int):
        self.delay_line = DelayLine(delay_length)
        self.feedback = 0.5
        self.filter_state = 0.0
        self.damping = 0.5
        self.damping_inv = 0.5

    def set_damping(self, value: float):
        self.damping = value
        self.damping_inv = 1.0 - value

    def set_feedback(self, value: float):
        self.feedback = value

    def process(self, value: float) -> float:
        output = self.delay_line.read()
        self.filter_state = output * self.damping_inv + self.filter_state * self.damping
        self.delay_line.write(value + self.filter_state * self.feedback)
        return output


class Freeverb:
    """Stereo reverberator with normalized [0, 1] controls"""

    def __init__(self, sample_rate: Optional[int] = None, config: ReverbConfig = REVERB_CONFIG):
        self.sample_rate = float(sample_rate or AUDIO_CONFIG.SAMPLE_RATE)
        self.config = config

        def length(tuning: int) -> int:
            return convert_length(tuning, self.sample_rate, config.REFERENCE_RATE)

        spread = config.STEREO_SPREAD
        self.combs = [
            (Comb(length(t)), Comb(length(t + spread)))
            for t in config.COMB_TUNING
        ]
        self.allpasses = [
            (AllPass(length(t), config.ALLPASS_FEEDBACK),
             AllPass(length(t + spread), config.ALLPASS_FEEDBACK))
            for t in config.ALLPASS_TUNING
        ]

        self.wet_gains = (0.0, 0.0)
        self.wet = 0.0
        self.width = 0.0
        self.dry = 0.0
        self.damping = 0.0
        self.room_size = 0.0

        self.set_wet(1.0)
        self.set_width(0.5)
        self.set_damping(0.5)
        self.set_room_size(0.5)

    @classmethod
    def from_config(cls, config: ReverbConfig = REVERB_CONFIG,
                    sample_rate: Optional[int] = None) -> 'Freeverb':
        """Build a reverb with the configured room, damping and mix"""
        freeverb = cls(sample_rate, config)
        freeverb.set_room_size(config.ROOM_SIZE)
        freeverb.set_damping(config.DAMPING)
        freeverb.set_wet(config.WET)
        freeverb.set_width(config.WIDTH)
        freeverb.set_dry(config.DRY)
        return freeverb

    def process(self, left: float, right: float) -> Tuple[float, float]:
        mixed = (left + right) * self.config.FIXED_GAIN
        out_l = 0.0
        out_r = 0.0

        for comb_l, comb_r in self.combs:
            out_l += comb_l.process(mixed)
            out_r += comb_r.process(mixed)

        for allpass_l, allpass_r in self.allpasses:
            out_l = allpass_l.process(out_l)
            out_r = allpass_r.process(out_r)

        wet1, wet2 = self.wet_gains
        return (out_l * wet1 + out_r * wet2 + left * self.dry,
                out_r * wet1 + out_l * wet2 + right * self.dry)

    def set_damping(self, value: float):
        self.damping = value * self.config.SCALE_DAMPING
        for comb_l, comb_r in self.combs:
            comb_l.set_damping(self.damping)
            comb_r.set_damping(self.damping)

    def set_wet(self, value: float):
        self.wet = value * self.config.SCALE_WET
        self._update_wet_gains()

    def set_width(self, value: float):
        self.width = value
        self._update_wet_gains()

    def _update_wet_gains(self):
        self.wet_gains = (
            self.wet * ((1.0 + self.width) / 2.0),
            self.wet * ((1.0 - self.width) / 2.0),
        )

    def set_room_size(self, value: float):
        self.room_size = value * self.config.SCALE_ROOM + self.config.OFFSET_ROOM
        for comb_l, comb_r in self.combs:
            comb_l.set_feedback(self.room_size)
            comb_r.set_feedback(self.room_size)

    def set_dry(self, value: float):
        self.dry = value
