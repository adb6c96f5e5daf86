"""Bit-vector helpers for arbitrary widths.

Pure Python: no solver involved. Used by the renderer (known-bits strings and
signed constants), the concrete evaluator, and the utility score of the
constant generalizer.
"""


def mask(width: int) -> int:
    """All-ones value of the given bit width."""
    if width <= 0:
        raise ValueError(f"Invalid bit width: {width}")
    return (1 << width) - 1


def msb(width: int) -> int:
    """Most significant bit (sign bit) of the given width."""
    return 1 << (width - 1)


def popcount(value: int) -> int:
    """Number of set bits of a non-negative value."""
    return bin(value).count("1")


def to_unsigned(value: int, width: int) -> int:
    """Wrap *value* into ``[0, 2**width)``.

    >>> to_unsigned(-1, 8)
    255
    """
    return value & mask(width)


def to_signed(value: int, width: int) -> int:
    """Interpret the low *width* bits of *value* as two's complement.

    >>> to_signed(255, 8)
    -1
    """
    value = to_unsigned(value, width)
    if value & msb(width):
        return value - (1 << width)
    return value


def known_bits_string(known_zero: int, known_one: int, width: int) -> str:
    """Render a known-bits pair MSB first: ``0``/``1`` when known, ``x`` otherwise.

    >>> known_bits_string(0b0001, 0b1000, 4)
    '1xx0'
    """
    if known_zero & known_one:
        raise ValueError("A bit cannot be known to be both zero and one")
    chars = []
    for bit in range(width - 1, -1, -1):
        if (known_zero >> bit) & 1:
            chars.append("0")
        elif (known_one >> bit) & 1:
            chars.append("1")
        else:
            chars.append("x")
    return "".join(chars)


def parse_known_bits(text: str) -> tuple[int, int]:
    """Inverse of :func:`known_bits_string`; returns ``(known_zero, known_one)``."""
    known_zero = known_one = 0
    for char in text:
        known_zero <<= 1
        known_one <<= 1
        if char == "0":
            known_zero |= 1
        elif char == "1":
            known_one |= 1
        elif char != "x":
            raise ValueError(f"Invalid known-bits character: {char!r}")
    return known_zero, known_one


__all__ = [
    "mask",
    "msb",
    "popcount",
    "to_unsigned",
    "to_signed",
    "known_bits_string",
    "parse_known_bits",
]
