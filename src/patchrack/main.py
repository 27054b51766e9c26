"""
Main Application Entry
----------------------
- Audio device setup
- MIDI device setup
- Fatal transport errors end the process with a message
"""

import sys
from typing import Optional

from .capture import WavCapture
from .config import AUDIO_CONFIG
from .core import Synthesizer, VoiceManager
from .debug import DEBUG
from .device import SoundDeviceSink, TransportError, select_output_device
from .midi import MIDIHandler
from .patches import VOICE_PATCHES
from .scheduler import RealTimeLoop


def main(patch: str = 'saw', audio_device: Optional[str] = None,
         midi_device: Optional[str] = None, capture_path: Optional[str] = None) -> int:
    """Initialize and run the synthesizer"""
    sink = None
    midi = MIDIHandler()
    capture = None
    try:
        sink = SoundDeviceSink.open(select_output_device(audio_device))
        midi.open(midi_device)
        if capture_path:
            capture = WavCapture(capture_path, AUDIO_CONFIG.SAMPLE_RATE)

        voices = VoiceManager(VOICE_PATCHES[patch])
        synth = Synthesizer(voices, capture=capture)
        DEBUG.log_info(f"Synthesizer initialized with {voices.capacity} '{patch}' voices")

        RealTimeLoop(synth, sink, midi).run()
    except TransportError as e:
        DEBUG.log_error("Fatal transport error", e)
        return 1
    except KeyboardInterrupt:
        DEBUG.log_info("Interrupted")
    finally:
        if sink is not None:
            sink.close()
        midi.close()
        if capture is not None:
            capture.close()
        DEBUG.log_summary()
        DEBUG.log_info("Cleanup completed")
    return 0


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
