"""
Patch Graph (Rack)
------------------
A Rack takes control events as inputs and outputs a single float signal.
It owns a set of modules whose outputs are connected to module inputs by
patch cables, all going through a flat bus of ports:

- ports 0..control_inputs-1 carry external control values (0-127 -> 0-1)
- every registered module gets the next port id for its output

Evaluation model:
Each get() first asks every module for a sample and stages it in a back
buffer, then commits every port whose staged value changed and pushes the
new value to all patched destinations. A module therefore sees the values
its inputs had after the previous step, so a cable patched back into an
upstream module (feedback) always carries exactly one sample of delay.
This lag is part of how patches sound; values are never propagated to a
fixed point within one step.

A destination slot keeps whichever value was written last. Patching two
sources into the same slot is allowed; the source with the higher port id
wins when both change in the same step.
"""

import copy
from typing import List, Optional, Tuple

from .audio import Module
from .config import MIDI_CONFIG

Destination = Tuple[int, int]  # (module port id, input slot)


class PatchError(ValueError):
    """Raised for patches that reference ports which do not exist"""


class Rack:
    """Patchable network of modules evaluated one sample at a time"""

    def __init__(self, control_inputs: Optional[int] = None):
        if control_inputs is None:
            control_inputs = MIDI_CONFIG.CONTROL_INPUTS
        self.control_inputs = control_inputs
        self.modules: List[Module] = []
        self.buffer: List[float] = [0.0] * control_inputs
        self.buffer_back: List[float] = [0.0] * control_inputs
        # output port id -> [(module port id, input slot), ...]
        self.patches: List[List[Destination]] = [[] for _ in range(control_inputs)]
        self.output: Optional[int] = None

    def __len__(self) -> int:
        return len(self.modules)

    @property
    def port_count(self) -> int:
        return len(self.buffer)

    def is_module_port(self, port: int) -> bool:
        return self.control_inputs <= port < self.port_count

    def module_at(self, port: int) -> Module:
        if not self.is_module_port(port):
            raise PatchError(f"Port {port} is not a module port")
        return self.modules[port - self.control_inputs]

    def register_module(self, module: Module) -> int:
        """Add a module and return the port id of its output"""
        port = self.port_count
        self.modules.append(module)
        self.buffer.append(0.0)
        self.buffer_back.append(0.0)
        self.patches.append([])
        return port

    # TODO: reject a second source patched into an already used input slot
    def patch(self, output: int, destination: Destination):
        """Connect port `output` to input `slot` of the module at `port`"""
        port, slot = destination
        if not 0 <= output < self.port_count:
            raise PatchError(f"Source port {output} does not exist")
        if not self.is_module_port(port):
            raise PatchError(f"Destination port {port} is not a module port")
        if slot < 0:
            raise PatchError(f"Invalid input slot {slot}")
        self.patches[output].append((port, slot))

    def set_output(self, port: int):
        if not 0 <= port < self.port_count:
            raise PatchError(f"Output port {port} does not exist")
        self.output = port

    def set_input(self, port: int, slot: int, value: float):
        """Write one module input directly, bypassing the bus"""
        self.module_at(port).set_input(slot, value)

    def fix_input(self, port: int, value: float):
        """Seed the committed value of a port without propagating it"""
        if not 0 <= port < self.port_count:
            raise PatchError(f"Port {port} does not exist")
        self.buffer[port] = value
        if port < self.control_inputs:
            self.buffer_back[port] = value

    def _propagate(self, port: int, value: float):
        offset = self.control_inputs
        for module_port, slot in self.patches[port]:
            self.modules[module_port - offset].set_input(slot, value)

    def process_control(self, param: int, value: int):
        """Apply a controller value (0-127) to control port `param` right away"""
        if not 0 <= param < self.control_inputs:
            return
        val = value / MIDI_CONFIG.CONTROL_MAX
        self.buffer[param] = val
        self.buffer_back[param] = val
        self._propagate(param, val)

    def get(self) -> float:
        """Advance every module by one sample and return the selected output"""
        offset = self.control_inputs
        buffer = self.buffer
        buffer_back = self.buffer_back

        for i, module in enumerate(self.modules):
            buffer_back[i + offset] = module.get()

        for port in range(len(buffer)):
            value = buffer_back[port]
            if value != buffer[port]:
                buffer[port] = value
                self._propagate(port, value)

        if self.output is None:
            return 0.0
        return buffer[self.output]

    def clone(self) -> 'Rack':
        """Fully independent copy, sharing no module state"""
        return copy.deepcopy(self)
