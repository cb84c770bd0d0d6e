"""Millisecond clock driven by timer-0 overflow ticks."""

__all__ = ["SystemClock"]

DEFAULT_F_CPU = 20_000_000
FRACTIONAL_MAX = 1000 >> 3


class SystemClock:
    """Counts milliseconds from timer overflows (prescaler 64, 256 steps)."""

    def __init__(self, f_cpu: int = DEFAULT_F_CPU) -> None:
        mhz = f_cpu // 1_000_000
        if mhz <= 0:
            raise ValueError("f_cpu must be at least 1 MHz")
        self.f_cpu = f_cpu
        self.microseconds_per_overflow = (64 * 256) // mhz
        self.milliseconds_increment = self.microseconds_per_overflow // 1000
        self.fractional_increment = (self.microseconds_per_overflow % 1000) >> 3
        self._milliseconds = 0
        self._fractional = 0

    def tick(self) -> None:
        """Account for one timer overflow."""
        self._milliseconds = (
            self._milliseconds + self.milliseconds_increment
        ) & 0xFFFFFFFF
        self._fractional = (self._fractional + self.fractional_increment) & 0xFF
        if self._fractional >= FRACTIONAL_MAX:
            self._fractional -= FRACTIONAL_MAX
            self._milliseconds = (self._milliseconds + 1) & 0xFFFFFFFF

    def milliseconds(self) -> int:
        """Milliseconds elapsed, as a wrapping 32-bit count."""
        return self._milliseconds