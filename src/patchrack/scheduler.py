"""
Real-Time Scheduling Loop
-------------------------
Single-threaded cooperative loop feeding the audio sink and draining MIDI
events. Audio always goes first: a MIDI event is only read on an iteration
where the sink needed neither samples nor recovery, and the loop only
sleeps when neither side is ready.
"""

import time
from typing import Optional

from .config import AUDIO_CONFIG
from .core import Synthesizer
from .debug import DEBUG
from .device import AudioSink, SinkState, TransportError
from .midi import MidiSource


class RealTimeLoop:
    def __init__(self, synth: Synthesizer, sink: AudioSink, midi: MidiSource,
                 poll_timeout: Optional[float] = None, max_block: Optional[int] = None,
                 status_interval: Optional[float] = None):
        self.synth = synth
        self.sink = sink
        self.midi = midi
        self.poll_timeout = AUDIO_CONFIG.POLL_TIMEOUT if poll_timeout is None else poll_timeout
        self.max_block = AUDIO_CONFIG.PERIOD_SIZE if max_block is None else max_block
        if self.max_block < 1:
            raise ValueError(f"max_block must be at least 1, got {self.max_block}")
        self.status_interval = (AUDIO_CONFIG.STATUS_INTERVAL if status_interval is None
                                else status_interval)
        self.last_status = time.perf_counter()

    def write_samples(self) -> bool:
        """Fill the sink and recover its stream; True if anything was done"""
        wrote = False
        available = self.sink.available()
        if available > 0:
            self.sink.write(self.synth.render(min(available, self.max_block)))
            wrote = True

        state = self.sink.state()
        if state is SinkState.RUNNING:
            return wrote
        if state is SinkState.PREPARED:
            DEBUG.log_info("Starting audio output stream")
            self.sink.start()
        elif state is SinkState.XRUN:
            DEBUG.log_warning("Underrun in audio output stream!")
            DEBUG.record_underrun()
            self.sink.prepare()
        elif state is SinkState.SUSPENDED:
            DEBUG.log_info("Resuming audio output stream")
            self.sink.resume()
        else:
            raise TransportError(f"Unexpected audio output state {state}")
        return True

    def read_midi_event(self) -> bool:
        if self.midi.pending() == 0:
            return False
        self.synth.handle_event(self.midi.read())
        return True

    def wait(self):
        """Sleep until the sink has room or an event is pending, or timeout"""
        deadline = time.perf_counter() + self.poll_timeout
        while time.perf_counter() < deadline:
            if self.sink.available() > 0 or self.midi.pending() > 0:
                return
            time.sleep(AUDIO_CONFIG.POLL_INTERVAL)

    def run_once(self) -> bool:
        """One loop iteration; False when it had to wait"""
        if self.write_samples():
            return True
        if self.read_midi_event():
            return True
        self.wait()
        return False

    def report_status(self) -> bool:
        """Log the DEBUG summary once every status_interval seconds"""
        now = time.perf_counter()
        if now - self.last_status < self.status_interval:
            return False
        self.last_status = now
        DEBUG.log_summary()
        return True

    def run(self):
        DEBUG.log_info("Real-time loop running")
        while True:
            self.run_once()
            self.report_status()
