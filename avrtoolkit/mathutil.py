"""Small integer helpers: value clamping and base-2 logarithm of powers of two."""

__all__ = ["clamp", "clamp_3f", "clamp_7f", "clamp_ff", "clamp16", "log2"]

_LOG2_TABLE = {1 << exponent: exponent for exponent in range(8)}


def clamp(value: int, low: int, high: int) -> int:
    """Clamp ``value`` into the byte range ``[low, high]``."""
    if value < low:
        return low
    if value > high:
        return high
    return value & 0xFF


def clamp_3f(value: int) -> int:
    """Clamp ``value`` into ``[0, 0x3f]``."""
    return clamp(value, 0, 0x3F)


def clamp_7f(value: int) -> int:
    """Clamp ``value`` into ``[0, 0x7f]``."""
    return clamp(value, 0, 0x7F)


def clamp_ff(value: int) -> int:
    """Clamp ``value`` into ``[0, 0xff]``."""
    return clamp(value, 0, 0xFF)


def clamp16(value: int, low: int, high: int) -> int:
    """Clamp a 16-bit signed ``value`` into ``[low, high]``."""
    if value < low:
        return low
    if value > high:
        return high
    return value


def log2(x: int) -> int:
    """Return log2 of a power of two up to 128; any other value gives 0."""
    return _LOG2_TABLE.get(x, 0)