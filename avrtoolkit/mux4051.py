"""Control of a CD4051 analog multiplexer wired to one nibble of a port.

The low three bits of the nibble select the channel; the fourth bit is the
active-low enable line.
"""

import enum
from typing import NamedTuple, Protocol

__all__ = ["Mux4051PortMode", "Mux4051Port"]


class Mux4051PortMode(enum.Enum):
    NIBBLE_HIGH = 0
    NIBBLE_LOW = 1


class _Masks(NamedTuple):
    select: int
    enable: int
    shift: int


_MASKS = {
    Mux4051PortMode.NIBBLE_HIGH: _Masks(0x70, 0x80, 4),
    Mux4051PortMode.NIBBLE_LOW: _Masks(0x07, 0x08, 0),
}


class _Port(Protocol):
    mode: int
    output: int


class Mux4051Port:
    """Drives a 4051 through a port with ``mode`` and ``output`` registers."""

    def __init__(
        self, port: _Port, mode: Mux4051PortMode = Mux4051PortMode.NIBBLE_LOW
    ) -> None:
        self.port = port
        self.mode = mode
        self._masks = _MASKS[mode]

    def init(self) -> None:
        self.port.mode = (self.port.mode | self._masks.select | self._masks.enable) & 0xFF

    def disable(self) -> None:
        self.port.output = (self.port.output | (0x08 << self._masks.shift)) & 0xFF

    def enable(self) -> None:
        self.port.output = self.port.output & ~(0x08 << self._masks.shift) & 0xFF

    def write(self, value: int) -> None:
        """Select channel ``value``, leaving the other port bits alone."""
        kept = self.port.output & ~self._masks.select
        self.port.output = (kept | (value << self._masks.shift)) & 0xFF