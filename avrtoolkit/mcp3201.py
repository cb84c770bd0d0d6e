"""Bit-banged reader for the MCP3201 12-bit SPI ADC."""

from typing import Protocol

from avrtoolkit.pins import Pin, PinMode

__all__ = ["Mcp3201"]


class _InputLine(Protocol):
    value: int

    def set_mode(self, mode: PinMode) -> None: ...

    def high(self) -> None: ...


class Mcp3201:
    """Reads 15 bits after chip select; the last 12 are the sample."""

    def __init__(self, cs: Pin, clk: Pin, data: _InputLine) -> None:
        self.cs = cs
        self.clk = clk
        self.data = data

    def init(self) -> None:
        self.cs.set_mode(PinMode.OUTPUT)
        self.cs.high()
        self.clk.set_mode(PinMode.OUTPUT)
        self.clk.low()
        self.data.set_mode(PinMode.INPUT)
        self.data.high()

    def _clock_in(self) -> int:
        self.clk.high()
        bit = 1 if self.data.value else 0
        self.clk.low()
        return bit

    def read(self) -> int:
        """Return a 12-bit conversion result."""
        self.cs.low()
        result = 0
        for _ in range(15):
            result = (result << 1) | self._clock_in()
        self.cs.high()
        return result & 0x0FFF