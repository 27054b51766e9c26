import unittest

import numpy as np

from patchrack.audio import ADSR, EnvelopeState, Module, Saw, Scale
from patchrack.capture import MemoryCapture
from patchrack.core import Synthesizer, Voice, VoiceManager
from patchrack.debug import DEBUG
from patchrack.midi import Controller, NoteOff, NoteOn
from patchrack.rack import Rack
from patchrack.reverb import Freeverb

SR = 48000


class Constant(Module):
    def __init__(self, value: float):
        self.value = value

    def get(self) -> float:
        return self.value


def gate_envelope() -> ADSR:
    """Opens in one sample, closes in one sample"""
    return ADSR(0.0, 0.0, 1.0, 0.0, sample_rate=SR)


def constant_voice(note: int, velocity: int) -> Voice:
    return Voice(Constant(velocity / 100.0), note, gate_envelope())


def dry_reverb() -> Freeverb:
    reverb = Freeverb(sample_rate=SR)
    reverb.set_wet(0.0)
    reverb.set_dry(1.0)
    return reverb


class TestVoice(unittest.TestCase):
    def test_envelope_read_before_step(self):
        adsr = ADSR(0.001, 0.1, 0.5, 0.1, sample_rate=SR)
        voice = Voice(Constant(0.5), 60, adsr, gain=2.0)
        self.assertEqual(voice.get(), 0.0)
        self.assertAlmostEqual(voice.get(), adsr.attack_slope)

    def test_note_off_releases(self):
        voice = Voice(Constant(1.0), 60, gate_envelope())
        voice.get()
        voice.note_off()
        self.assertIs(voice.state, EnvelopeState.RELEASING)
        voice.get()
        self.assertTrue(voice.is_done)

    def test_control_reaches_rack_source(self):
        rack = Rack(2)
        scale = rack.register_module(Scale(1.0))
        rack.patch(1, (scale, 0))
        rack.set_output(scale)
        voice = Voice(rack, 60, gate_envelope())
        voice.process_control(1, 127)
        self.assertEqual(rack.module_at(scale).get(), 1.0)

    def test_control_ignored_by_plain_module(self):
        voice = Voice(Constant(1.0), 60, gate_envelope())
        voice.process_control(1, 127)
        self.assertEqual(voice.source.value, 1.0)


class TestVoiceManager(unittest.TestCase):
    def setUp(self):
        DEBUG.reset_counters()

    def test_pool_overflow_drops_note(self):
        manager = VoiceManager(constant_voice, capacity=256)
        for i in range(256):
            self.assertEqual(manager.note_on(i % 128, 100), i)
        self.assertEqual(manager.free_count, 0)

        with self.assertLogs('patchrack', level='WARNING'):
            self.assertIsNone(manager.note_on(60, 100))
        self.assertEqual(manager.active_count, 256)
        self.assertEqual(DEBUG.dropped_notes, 1)

    def test_finished_voice_frees_its_slot(self):
        manager = VoiceManager(constant_voice, capacity=4)
        for note in (60, 61, 62, 63):
            manager.note_on(note, 100)
        manager.get()
        manager.note_off(60)
        manager.get()
        self.assertEqual(manager.free_count, 1)
        self.assertIsNone(manager.slots[0])
        self.assertEqual(manager.note_on(64, 100), 0)

    def test_note_off_releases_every_matching_voice(self):
        manager = VoiceManager(constant_voice, capacity=4)
        manager.note_on(60, 100)
        manager.note_on(60, 90)
        manager.note_on(61, 100)
        manager.get()
        manager.note_off(60)
        states = [voice.state for voice in manager]
        self.assertEqual(states, [EnvelopeState.RELEASING, EnvelopeState.RELEASING,
                                  EnvelopeState.DECAYING])

    def test_zero_velocity_is_note_off(self):
        manager = VoiceManager(constant_voice, capacity=4)
        manager.note_on(60, 100)
        manager.get()
        self.assertIsNone(manager.note_on(60, 0))
        self.assertEqual(manager.active_count, 1)
        self.assertIs(manager.slots[0].state, EnvelopeState.RELEASING)

    def test_sum_of_voices(self):
        manager = VoiceManager(constant_voice, capacity=4)
        manager.note_on(60, 50)
        manager.note_on(61, 25)
        self.assertEqual(manager.get(), 0.0)
        self.assertAlmostEqual(manager.get(), 0.75)

    def test_reset(self):
        manager = VoiceManager(constant_voice, capacity=4)
        manager.note_on(60, 100)
        manager.reset()
        self.assertEqual(manager.active_count, 0)
        self.assertEqual(manager.get(), 0.0)

    def test_default_capacity(self):
        manager = VoiceManager(constant_voice)
        self.assertEqual(manager.capacity, 256)

    def test_zero_capacity_drops_every_note(self):
        manager = VoiceManager(constant_voice, capacity=0)
        self.assertEqual(manager.capacity, 0)
        with self.assertLogs('patchrack', level='WARNING'):
            self.assertIsNone(manager.note_on(60, 100))
        self.assertEqual(DEBUG.dropped_notes, 1)


class TestSynthesizer(unittest.TestCase):
    def test_render_shape_and_silence(self):
        synth = Synthesizer(VoiceManager(constant_voice, capacity=4))
        out = synth.render(64)
        self.assertEqual(out.shape, (64, 2))
        self.assertEqual(out.dtype, np.int16)
        self.assertFalse(out.any())

    def test_render_feeds_capture(self):
        capture = MemoryCapture()
        synth = Synthesizer(VoiceManager(constant_voice, capacity=4),
                            reverb=dry_reverb(), capture=capture)
        synth.handle_event(NoteOn(60, 50))
        first = synth.render(32)
        second = synth.render(16)
        np.testing.assert_array_equal(capture.samples(), np.concatenate([first, second]))

    def test_sustained_voice_is_audible(self):
        def saw_voice(note, velocity):
            return Voice(Saw(1000.0, sample_rate=SR), note, gate_envelope(), gain=0.5)

        synth = Synthesizer(VoiceManager(saw_voice, capacity=4), reverb=dry_reverb())
        synth.handle_event(NoteOn(60, 100))
        out = synth.render(200)
        self.assertTrue(np.any(out != 0))
        self.assertTrue(np.all(out[:, 0] == out[:, 1]))
        self.assertLess(np.max(np.abs(out.astype(np.int32))), 32768)

    def test_output_is_limited(self):
        synth = Synthesizer(VoiceManager(lambda n, v: Voice(Constant(50.0), n, gate_envelope()),
                                         capacity=4), reverb=dry_reverb())
        synth.handle_event(NoteOn(60, 100))
        left, right = synth.next_sample()
        left, right = synth.next_sample()
        self.assertLess(left, 1.0)
        self.assertAlmostEqual(left, 1.0 - np.exp(-0.999))

    def test_handle_events(self):
        manager = VoiceManager(constant_voice, capacity=4)
        synth = Synthesizer(manager)
        synth.handle_event(NoteOn(60, 100))
        self.assertEqual(manager.active_count, 1)
        manager.get()
        synth.handle_event(NoteOff(60))
        self.assertIs(manager.slots[0].state, EnvelopeState.RELEASING)

    def test_controller_reaches_rack(self):
        rack = Rack(2)
        scale = rack.register_module(Scale(1.0))
        rack.patch(1, (scale, 0))
        rack.set_output(scale)
        synth = Synthesizer(rack)
        synth.handle_event(Controller(0, 1, 127))
        self.assertEqual(rack.module_at(scale).get(), 1.0)
        # A lone rack has no voices to start
        synth.handle_event(NoteOn(60, 100))


if __name__ == '__main__':
    unittest.main()
