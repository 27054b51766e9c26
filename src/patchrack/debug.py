"""
Debug and Monitoring System
-------------------------
Logging and runtime diagnostics for the engine.

Features:
1. Logging:
   - Shared logger for every engine component
   - Info / debug / warning / error helpers

2. Performance Monitoring:
   - Block render time tracking
   - Buffer underrun counting

3. Signal Monitoring:
   - Output level metering
   - Voice pool occupancy and dropped notes
"""

import time
import logging
from typing import Dict, Optional
from collections import deque
import numpy as np

LOGGER_NAME = 'patchrack'


class PerformanceMonitor:
    def __init__(self, window_size: int = 100):
        self.times = deque(maxlen=window_size)

    def measure(self) -> float:
        return sum(self.times) / len(self.times) if self.times else 0.0

    def add_measurement(self, duration: float):
        self.times.append(duration)


class SignalMonitor:
    def __init__(self, buffer_size: int = 1024):
        self.buffer = deque(maxlen=buffer_size)

    def update(self, values: np.ndarray):
        self.buffer.extend(np.ravel(values))

    def peak(self) -> float:
        if not self.buffer:
            return 0.0
        return float(np.max(np.abs(np.asarray(self.buffer, dtype=np.float64))))


class DebugSystem:
    def __init__(self, level: int = logging.INFO):
        logging.basicConfig(
            level=level,
            format='%(asctime)s - %(levelname)s - %(message)s'
        )
        self.logger = logging.getLogger(LOGGER_NAME)
        self.perf_monitor = PerformanceMonitor()
        self.signal_monitors: Dict[str, SignalMonitor] = {
            'audio_out': SignalMonitor(),
        }
        self.voice_count = 0
        self.underruns = 0
        self.dropped_notes = 0

    def start_measurement(self) -> float:
        return time.perf_counter()

    def end_measurement(self, start_time: float, label: str):
        duration = time.perf_counter() - start_time
        self.perf_monitor.add_measurement(duration)
        self.logger.debug(f"{label}: {duration*1000:.2f}ms")

    def log_info(self, message: str):
        """Log information message"""
        self.logger.info(message)

    def log_debug(self, message: str):
        """Log debug message"""
        self.logger.debug(message)

    def log_error(self, message: str, exception: Optional[Exception] = None):
        """Log error message with optional exception"""
        if exception:
            self.logger.error(f"{message}: {exception}")
        else:
            self.logger.error(message)

    def log_warning(self, message: str):
        """Log warning message"""
        self.logger.warning(message)

    def monitor_signal(self, name: str, values: np.ndarray):
        if name in self.signal_monitors:
            self.signal_monitors[name].update(values)

    def get_signal_peak(self, name: str) -> float:
        if name in self.signal_monitors:
            return self.signal_monitors[name].peak()
        return 0.0

    def get_performance_stats(self) -> float:
        return self.perf_monitor.measure()

    def track_voices(self, active_count: int):
        """Track number of active voices"""
        self.voice_count = active_count

    def get_active_voice_count(self) -> int:
        return self.voice_count

    def record_underrun(self):
        self.underruns += 1

    def record_dropped_note(self):
        self.dropped_notes += 1

    def summary(self) -> str:
        """One-line engine status for periodic logging"""
        return (f"render {self.get_performance_stats()*1000:.2f}ms, "
                f"voices {self.get_active_voice_count()}, "
                f"peak {self.get_signal_peak('audio_out'):.3f}, "
                f"underruns {self.underruns}, dropped notes {self.dropped_notes}")

    def log_summary(self):
        self.logger.info(self.summary())

    def reset_counters(self):
        self.underruns = 0
        self.dropped_notes = 0
        self.voice_count = 0


# Global debug instance
DEBUG = DebugSystem()
