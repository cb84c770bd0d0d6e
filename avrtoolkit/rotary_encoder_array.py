"""Driver for an array of clickable rotary encoders behind shift registers."""

from typing import List

from avrtoolkit.pins import Pin, PinMode

__all__ = ["RotaryEncoderArray"]


class RotaryEncoderArray:
    """Encoders whose A, B and click lines are read through three chains of
    parallel-in shift registers sharing a load and a clock pin."""

    def __init__(
        self, load: Pin, clock: Pin, a: Pin, b: Pin, c: Pin, size: int = 8
    ) -> None:
        if size < 1:
            raise ValueError("size must be at least 1")
        self.load = load
        self.clock = clock
        self.a = a
        self.b = b
        self.c = c
        self.size = size
        self._state_a: List[int] = [0] * size
        self._state_b: List[int] = [0] * size
        self._state_c: List[int] = [0] * size

    def init(self) -> None:
        self.clock.set_mode(PinMode.OUTPUT)
        self.load.set_mode(PinMode.OUTPUT)
        self.a.set_mode(PinMode.INPUT)
        self.b.set_mode(PinMode.INPUT)
        self.c.set_mode(PinMode.INPUT)
        self.load.high()
        self.clock.low()
        self._state_a = [0xFF] * self.size
        self._state_b = [0xFF] * self.size
        self._state_c = [0xFF] * self.size

    def poll(self) -> None:
        """Load the registers and shift one sample of every line in.

        The last encoder is read first.
        """
        self.load.low()
        self.load.high()
        for index in reversed(range(self.size)):
            self._state_a[index] = self._shift(self._state_a[index], self.a)
            self._state_b[index] = self._shift(self._state_b[index], self.b)
            self._state_c[index] = self._shift(self._state_c[index], self.c)
            self.clock.high()
            self.clock.low()

    @staticmethod
    def _shift(history: int, pin: Pin) -> int:
        return ((history << 1) | (1 if pin.value else 0)) & 0xFF

    def read(self, index: int) -> int:
        """Return 1 or -1 when encoder ``index`` just moved a detent, else 0."""
        a = self._state_a[index]
        b = self._state_b[index]
        if a == 0x80 and (b & 0xF0) == 0x00:
            return 1
        if b == 0x80 and (a & 0xF0) == 0x00:
            return -1
        return 0

    def clicked(self, index: int) -> bool:
        return self.raised(index)

    def lowered(self, index: int) -> bool:
        return self._state_c[index] == 0x80

    def raised(self, index: int) -> bool:
        return self._state_c[index] == 0x7F

    def high(self, index: int) -> bool:
        return self._state_c[index] == 0xFF

    def low(self, index: int) -> bool:
        return self._state_c[index] == 0x00

    def state(self, index: int) -> int:
        return self._state_c[index]

    def event(self, index: int) -> int:
        """-1 when the click switch was just pressed, 1 when released, else 0."""
        if self.lowered(index):
            return -1
        if self.raised(index):
            return 1
        return 0