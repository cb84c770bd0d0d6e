"""Fast 16-bit pseudo random number generator (Galois LFSR)."""

__all__ = ["Random"]

DEFAULT_SEED = 0x21
_FEEDBACK = 0xB400


def _truncating_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator >= 0) else -quotient


def _to_int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


class Random:
    """Galois LFSR with feedback polynomial x^16 + x^14 + x^13 + x^11.

    The period is 65535 for any non-zero seed.
    """

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self.state = seed & 0xFFFF

    def update(self) -> None:
        """Advance the generator by one step."""
        feedback = _FEEDBACK if self.state & 1 else 0
        self.state = ((self.state >> 1) ^ feedback) & 0xFFFF

    def seed(self, seed: int) -> None:
        """Reset the generator state."""
        self.state = seed & 0xFFFF

    def state_msb(self) -> int:
        """Return the high byte of the current state."""
        return (self.state >> 8) & 0xFF

    def get_byte(self) -> int:
        """Advance and return the high byte of the new state."""
        self.update()
        return self.state_msb()

    def get_word(self) -> int:
        """Advance and return the new 16-bit state."""
        self.update()
        return self.state

    def get(self, low: int, high: int) -> int:
        """Advance and return a value scaled into ``[low, high]``."""
        self.update()
        span = high - low + 1
        return _to_int16(low + _truncating_div(self.state * span, 65536))