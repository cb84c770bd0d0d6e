"""Driver for an HD44780 character LCD on a 4-bit parallel bus.

Bytes are split into nibbles and queued; ``tick`` sends one nibble per two
calls (enable high, then enable low), so it can run from a timer.
"""

import enum
from collections import deque
from typing import Deque, Iterable, Protocol, Union

from avrtoolkit.pins import Pin, PinMode

__all__ = ["LcdFlag", "Hd44780Lcd"]

BUFFER_SIZE = 64


class LcdFlag(enum.IntEnum):
    COMMAND = 0x00
    DATA = 0x10

    CLEAR = 0x01
    HOME = 0x02
    ENTRY_MODE = 0x04
    DISPLAY_STATUS = 0x08
    CURSOR = 0x10
    FUNCTION_SET = 0x20
    SET_CGRAM_ADDRESS = 0x40
    SET_DDRAM_ADDRESS = 0x80

    SHIFT = 0x01
    NO_SHIFT = 0x00
    CURSOR_INCREMENT = 0x02
    CURSOR_NO_INCREMENT = 0x00
    DISPLAY_ON = 0x04
    DISPLAY_OFF = 0x00
    CURSOR_ON = 0x02
    CURSOR_OFF = 0x00
    BLINKING_ON = 0x01
    BLINKING_OFF = 0x00

    EIGHT_BITS = 0x10
    FOUR_BITS = 0x00

    TWO_LINES = 0x08
    ONE_LINE = 0x00

    LARGE_FONT = 0x04
    SMALL_FONT = 0x00


class _ParallelOutput(Protocol):
    def set_mode(self, mode: PinMode) -> None: ...

    def write(self, value: int) -> None: ...


class Hd44780Lcd:
    """A ``width`` x ``height`` HD44780 display with a queued output."""

    def __init__(
        self,
        rs_pin: Pin,
        enable_pin: Pin,
        port: _ParallelOutput,
        width: int = 16,
        height: int = 2,
    ) -> None:
        if width < 1 or height < 1:
            raise ValueError("width and height must be at least 1")
        self.rs_pin = rs_pin
        self.enable_pin = enable_pin
        self.port = port
        self.width = width
        self.height = height
        self._queue: Deque[int] = deque()
        self.transmitting = False
        self.status_counter = 0

    def init(self) -> None:
        """Run the power-up sequence that puts the display in 4-bit mode."""
        self.rs_pin.set_mode(PinMode.OUTPUT)
        self.enable_pin.set_mode(PinMode.OUTPUT)
        self.port.set_mode(PinMode.OUTPUT)
        self.rs_pin.low()
        self.enable_pin.low()

        for _ in range(3):
            self._slow_write((LcdFlag.FUNCTION_SET | LcdFlag.EIGHT_BITS) >> 4)
        self._slow_write((LcdFlag.FUNCTION_SET | LcdFlag.FOUR_BITS) >> 4)

        function = LcdFlag.FUNCTION_SET | LcdFlag.FOUR_BITS | LcdFlag.SMALL_FONT
        if self.height == 2:
            function |= LcdFlag.TWO_LINES
        self._slow_command(function)
        self._slow_command(
            LcdFlag.DISPLAY_STATUS
            | LcdFlag.DISPLAY_ON
            | LcdFlag.CURSOR_OFF
            | LcdFlag.BLINKING_OFF
        )
        self._slow_command(
            LcdFlag.ENTRY_MODE | LcdFlag.CURSOR_INCREMENT | LcdFlag.NO_SHIFT
        )
        self._slow_command(LcdFlag.CLEAR)
        self._slow_command(LcdFlag.HOME)
        self.transmitting = False

    def tick(self) -> None:
        """Finish the nibble in flight, or start sending the next one."""
        self.status_counter = (self.status_counter + 1) & 0xFF
        if self.transmitting:
            self._end_write()
            self.transmitting = False
        elif self._queue:
            self.transmitting = True
            self._start_write(self._queue.popleft())

    def _enqueue(self, kind: int, c: int) -> bool:
        if self.writable() < 2:
            return False
        c &= 0xFF
        self._queue.append(kind | (c >> 4))
        self._queue.append(kind | (c & 0x0F))
        return True

    def write_data(self, c: int) -> bool:
        """Queue a character; False when the queue has no room for it."""
        return self._enqueue(LcdFlag.DATA, c)

    def write_command(self, c: int) -> bool:
        """Queue a command byte; False when the queue has no room for it."""
        return self._enqueue(LcdFlag.COMMAND, c)

    def write(self, data: Union[int, str, bytes]) -> int:
        """Queue a character or a string; return how many were queued."""
        if isinstance(data, int):
            return 1 if self.write_data(data) else 0
        if isinstance(data, str):
            data = data.encode("latin-1", errors="replace")
        return sum(1 for byte in data if self.write_data(byte))

    def move_cursor(self, row: int, col: int) -> None:
        self.write_command(LcdFlag.SET_DDRAM_ADDRESS | col | (row << 6))

    def set_custom_char_map(self, data: Iterable[int], first_character: int) -> None:
        """Load custom glyphs (8 bytes each) starting at ``first_character``."""
        self._slow_command(LcdFlag.SET_CGRAM_ADDRESS | (first_character << 3))
        for byte in data:
            self._slow_data(byte)

    def flush(self) -> None:
        """Send everything queued."""
        while self._queue or self.transmitting:
            self.tick()

    def writable(self) -> int:
        return BUFFER_SIZE - len(self._queue)

    def readable(self) -> int:
        return len(self._queue)

    def busy(self) -> bool:
        return self.transmitting

    def reset_status_counter(self) -> None:
        self.status_counter = 0

    def _start_write(self, nibble: int) -> None:
        if nibble & LcdFlag.DATA:
            self.rs_pin.high()
        self.port.write(nibble & 0x0F)
        self.enable_pin.high()

    def _end_write(self) -> None:
        self.enable_pin.low()
        self.rs_pin.low()

    def _slow_write(self, nibble: int) -> None:
        self._start_write(nibble)
        self._end_write()

    def _slow_command(self, value: int) -> None:
        value &= 0xFF
        self._slow_write(LcdFlag.COMMAND | (value >> 4))
        self._slow_write(LcdFlag.COMMAND | (value & 0x0F))

    def _slow_data(self, value: int) -> None:
        value &= 0xFF
        self._slow_write(LcdFlag.DATA | (value >> 4))
        self._slow_write(LcdFlag.DATA | (value & 0x0F))