"""
Stock Patches
-------------
Ready-made racks and voice factories. A voice factory receives the MIDI
note and velocity of a note-on and returns a Voice owning a freshly built
(or cloned) source, so no two voices ever share oscillator or filter state.
"""

from typing import Callable, Dict, Optional, Sequence, Tuple

from .audio import ADSR, Avg4, KarplusStrong, LinMap, Mult, Saw, Sine, Square, Triangle
from .config import ENVELOPE_CONFIG
from .core import Voice, VoiceFactory
from .rack import Rack


def midi_to_freq(note: int) -> float:
    return 440.0 * 2.0 ** ((note - 69) / 12.0)


def velocity_gain(velocity: int) -> float:
    """Per-voice gain, leaving headroom for many simultaneous voices"""
    return (velocity / 128.0) / 10.0


def reference_envelope() -> ADSR:
    return ADSR(ENVELOPE_CONFIG.ATTACK, ENVELOPE_CONFIG.DECAY,
                ENVELOPE_CONFIG.SUSTAIN, ENVELOPE_CONFIG.RELEASE)


def saw_voice(note: int, velocity: int) -> Voice:
    """Single saw oscillator at the note pitch"""
    rack = Rack()
    saw = rack.register_module(Saw(midi_to_freq(note)))
    rack.set_output(saw)
    return Voice(rack, note, reference_envelope(), gain=velocity_gain(velocity))


def pluck_voice(note: int, velocity: int) -> Voice:
    """Karplus-Strong string; the string decays on its own, the envelope just gates it"""
    rack = Rack()
    string = rack.register_module(KarplusStrong(midi_to_freq(note)))
    rack.set_output(string)
    adsr = ADSR(0.001, 2.0, 0.0, 0.2)
    return Voice(rack, note, adsr, gain=velocity_gain(velocity))


def four_oscillator_rack() -> Rack:
    """Single-rack drone driven by controllers.

    CC 1 sets the base pitch (55-220 Hz), CC 2-4 the pitch ratios of the
    saw, square and sine against the triangle, CC 0 the volume.
    """
    rack = Rack(8)

    freq1 = rack.register_module(LinMap(55.0, 220.0))
    rack.patch(1, (freq1, 0))

    ratios = []
    for control in (2, 3, 4):
        ratio = rack.register_module(LinMap(0.025, 1.0))
        rack.patch(control, (ratio, 0))
        ratios.append(ratio)

    freqs = [freq1]
    for ratio in ratios:
        freq = rack.register_module(Mult())
        rack.patch(freq1, (freq, 0))
        rack.patch(ratio, (freq, 1))
        freqs.append(freq)

    mix = rack.register_module(Avg4())
    for slot, (osc_type, freq) in enumerate(zip((Triangle, Saw, Square, Sine), freqs)):
        osc = rack.register_module(osc_type(220.0))
        rack.patch(freq, (osc, 0))
        rack.patch(osc, (mix, slot))

    vol = rack.register_module(Mult())
    rack.patch(0, (vol, 0))
    rack.patch(mix, (vol, 1))
    rack.set_output(vol)
    return rack


def prototype_voice_factory(prototype: Rack, pitch_inputs: Sequence[Tuple[int, int]],
                            envelope: Optional[Callable[[], ADSR]] = None) -> VoiceFactory:
    """Voices built by cloning `prototype` and writing the note frequency
    into each (module port, slot) in `pitch_inputs`.
    """
    envelope = envelope or reference_envelope

    def factory(note: int, velocity: int) -> Voice:
        rack = prototype.clone()
        freq = midi_to_freq(note)
        for port, slot in pitch_inputs:
            rack.set_input(port, slot, freq)
        return Voice(rack, note, envelope(), gain=velocity_gain(velocity))

    return factory


VOICE_PATCHES: Dict[str, VoiceFactory] = {
    'saw': saw_voice,
    'pluck': pluck_voice,
}
