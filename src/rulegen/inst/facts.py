"""Abstract facts about variables: known bits and value ranges.

These are side-channel data. They never take part in node identity; a rule
keeps its own ``{Var: VarFacts}`` table so the same interned variable can
carry different facts in different rules.
"""

from __future__ import annotations

import dataclasses

from rulegen.core.bits import known_bits_string, mask, popcount


@dataclasses.dataclass(frozen=True, slots=True)
class KnownBits:
    """Per-bit knowledge: bits in ``zero`` are provably 0, bits in ``one`` provably 1."""

    width: int
    zero: int = 0
    one: int = 0

    def __post_init__(self):
        if self.zero & self.one:
            raise ValueError("KnownBits has conflicting zero/one bits")
        if (self.zero | self.one) & ~mask(self.width):
            raise ValueError(f"KnownBits does not fit in {self.width} bits")

    @property
    def is_unknown(self) -> bool:
        return not (self.zero or self.one)

    def unknown_count(self) -> int:
        """Number of bits about which nothing is known."""
        return self.width - popcount(self.zero | self.one)

    def contains(self, value: int) -> bool:
        return value & self.zero == 0 and value & self.one == self.one

    def __str__(self) -> str:
        return known_bits_string(self.zero, self.one, self.width)


@dataclasses.dataclass(frozen=True, slots=True)
class ConstantRange:
    """Half-open unsigned interval ``[lower, upper)``, possibly wrapping.

    ``lower == upper`` denotes the full set.
    """

    width: int
    lower: int = 0
    upper: int = 0

    def __post_init__(self):
        limit = mask(self.width)
        if not (0 <= self.lower <= limit and 0 <= self.upper <= limit + 1):
            raise ValueError(f"Range bounds do not fit in {self.width} bits")

    @classmethod
    def full(cls, width: int) -> "ConstantRange":
        return cls(width, 0, 0)

    @property
    def is_full_set(self) -> bool:
        return self.lower == self.upper

    @property
    def is_wrapped(self) -> bool:
        return self.lower > self.upper

    def contains(self, value: int) -> bool:
        if self.is_full_set:
            return True
        if self.is_wrapped:
            return value >= self.lower or value < self.upper
        return self.lower <= value < self.upper

    def __str__(self) -> str:
        return f"[{self.lower},{self.upper})"


@dataclasses.dataclass(frozen=True, slots=True)
class VarFacts:
    known_zero: int = 0
    known_one: int = 0
    non_negative: bool = False
    negative: bool = False
    non_zero: bool = False
    power_of_two: bool = False
    num_sign_bits: int = 1
    range: ConstantRange | None = None

    @property
    def is_empty(self) -> bool:
        return self == NO_FACTS

    def known_bits(self, width: int) -> KnownBits:
        return KnownBits(width, self.known_zero, self.known_one)

    def with_known_bits(self, known: KnownBits) -> "VarFacts":
        """Merge *known* into these facts; on a conflicting bit *known* wins."""
        return dataclasses.replace(
            self,
            known_zero=(self.known_zero & ~known.one) | known.zero,
            known_one=(self.known_one & ~known.zero) | known.one,
        )

    def with_range(self, value_range: ConstantRange) -> "VarFacts":
        return dataclasses.replace(self, range=value_range)


NO_FACTS = VarFacts()
