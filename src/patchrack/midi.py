"""
MIDI Event System
-----------------
MIDI input handling for the real-time loop.

Features:
1. Event Model:
   - NoteOn / NoteOff / Controller events
   - Decoding from mido messages (velocity 0 stays a NoteOn,
     the engine treats it as a note-off)

2. MIDI Input:
   - Device detection and auto-selection
   - Non-blocking pending count and pull-one-event reads
   - Fatal transport errors when no device can be opened
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Union

import mido

from .debug import DEBUG
from .device import TransportError


@dataclass(frozen=True)
class NoteOn:
    note: int
    velocity: int
    channel: int = 0


@dataclass(frozen=True)
class NoteOff:
    note: int
    channel: int = 0


@dataclass(frozen=True)
class Controller:
    channel: int
    param: int
    value: int


MidiEvent = Union[NoteOn, NoteOff, Controller]


def decode_message(message: mido.Message) -> Optional[MidiEvent]:
    """Convert a mido message into an engine event, None if unsupported"""
    if message.type == 'note_on':
        return NoteOn(message.note, message.velocity, message.channel)
    if message.type == 'note_off':
        return NoteOff(message.note, message.channel)
    if message.type == 'control_change':
        return Controller(message.channel, message.control, message.value)
    return None


class MidiSource:
    """Interface of the control event source consumed by the loop"""

    def pending(self) -> int:
        raise NotImplementedError

    def read(self) -> MidiEvent:
        raise NotImplementedError


def list_input_devices() -> List[str]:
    return mido.get_input_names()


class MIDIHandler(MidiSource):
    """Reads events from a mido input port without blocking"""

    def __init__(self, port=None):
        self.input_port = port
        self.device_name: Optional[str] = None
        self.events: Deque[MidiEvent] = deque()

    def open(self, device_name: Optional[str] = None):
        """Open a MIDI input, auto-selecting the first device if none given"""
        try:
            available_devices = list_input_devices()
        except Exception as e:
            raise TransportError(f"MIDI device enumeration failed: {e}") from e
        DEBUG.log_info(f"Available MIDI devices: {available_devices}")

        if not available_devices:
            raise TransportError("No MIDI input devices found")

        if device_name is None:
            device_name = available_devices[0]
            DEBUG.log_info(f"Auto-selected MIDI device: {device_name}")
        elif device_name not in available_devices:
            raise TransportError(f"MIDI device '{device_name}' not found")

        try:
            self.input_port = mido.open_input(device_name)
        except (IOError, OSError) as e:
            raise TransportError(f"Could not open MIDI device '{device_name}': {e}") from e
        self.device_name = device_name
        DEBUG.log_info(f"MIDI input started on {device_name}")

    def close(self):
        if self.input_port is not None:
            self.input_port.close()
            self.input_port = None
            DEBUG.log_info("MIDI input stopped")
        self.events.clear()

    def pending(self) -> int:
        if self.input_port is not None:
            for message in self.input_port.iter_pending():
                event = decode_message(message)
                if event is None:
                    DEBUG.log_debug(f"Unhandled MIDI message type: {message.type}")
                    continue
                self.events.append(event)
        return len(self.events)

    def read(self) -> MidiEvent:
        return self.events.popleft()
