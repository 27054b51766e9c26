"""
Modular Polyphonic Synthesizer
-----------------------------
A real-time modular synthesizer engine driven by MIDI-like control events.

Public Modules:
    audio: Oscillator, arithmetic and delay modules, ADSR envelope
    rack: Patch graph evaluated one sample at a time
    core: Voices, voice pool and output chain
    reverb: Freeverb stereo reverberator
    midi: Control events and MIDI input
    scheduler: Real-time loop feeding the audio sink
"""

__version__ = '1.0.0'

# Expose main classes for easier imports
from .audio import ADSR, EnvelopeState, Module, create_module, MODULE_TYPES
from .rack import Rack, PatchError
from .core import Voice, VoiceManager, Synthesizer
from .reverb import Freeverb
from .midi import NoteOn, NoteOff, Controller, MIDIHandler
from .device import AudioSink, SinkState, TransportError
from .scheduler import RealTimeLoop
from .config import AUDIO_CONFIG, MIDI_CONFIG, ENVELOPE_CONFIG, REVERB_CONFIG

__all__ = [
    'ADSR',
    'EnvelopeState',
    'Module',
    'create_module',
    'MODULE_TYPES',
    'Rack',
    'PatchError',
    'Voice',
    'VoiceManager',
    'Synthesizer',
    'Freeverb',
    'NoteOn',
    'NoteOff',
    'Controller',
    'MIDIHandler',
    'AudioSink',
    'SinkState',
    'TransportError',
    'RealTimeLoop',
    'AUDIO_CONFIG',
    'MIDI_CONFIG',
    'ENVELOPE_CONFIG',
    'REVERB_CONFIG',
]
