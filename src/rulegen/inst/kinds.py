"""The closed set of instruction kinds.

Every renderer and backend is a single ``match`` over :class:`InstKind`;
adding a kind means touching each of them, which is the point.
"""

from __future__ import annotations

import enum


class InstKind(enum.Enum):
    VAR = "var"
    CONST = "const"

    # Binary arithmetic
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    UDIV = "udiv"
    SDIV = "sdiv"
    UREM = "urem"
    SREM = "srem"

    # Binary bitwise
    AND = "and"
    OR = "or"
    XOR = "xor"
    SHL = "shl"
    LSHR = "lshr"
    ASHR = "ashr"

    # Comparisons (result width 1)
    EQ = "eq"
    NE = "ne"
    ULT = "ult"
    SLT = "slt"
    ULE = "ule"
    SLE = "sle"

    # Casts
    ZEXT = "zext"
    SEXT = "sext"
    TRUNC = "trunc"

    SELECT = "select"

    @property
    def is_leaf(self) -> bool:
        return self in (InstKind.VAR, InstKind.CONST)

    @property
    def is_binary(self) -> bool:
        return self in BINARY_KINDS

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISON_KINDS

    @property
    def is_cast(self) -> bool:
        return self in CAST_KINDS

    @property
    def is_commutative(self) -> bool:
        return self in COMMUTATIVE_KINDS

    @property
    def arity(self) -> int:
        if self.is_leaf:
            return 0
        if self.is_cast:
            return 1
        if self is InstKind.SELECT:
            return 3
        return 2

    @classmethod
    def from_name(cls, name: str) -> "InstKind":
        kind = _BY_NAME.get(name)
        if kind is None or kind.is_leaf:
            raise KeyError(name)
        return kind


BINARY_KINDS = frozenset(
    {
        InstKind.ADD,
        InstKind.SUB,
        InstKind.MUL,
        InstKind.UDIV,
        InstKind.SDIV,
        InstKind.UREM,
        InstKind.SREM,
        InstKind.AND,
        InstKind.OR,
        InstKind.XOR,
        InstKind.SHL,
        InstKind.LSHR,
        InstKind.ASHR,
    }
)

COMPARISON_KINDS = frozenset(
    {
        InstKind.EQ,
        InstKind.NE,
        InstKind.ULT,
        InstKind.SLT,
        InstKind.ULE,
        InstKind.SLE,
    }
)

CAST_KINDS = frozenset({InstKind.ZEXT, InstKind.SEXT, InstKind.TRUNC})

COMMUTATIVE_KINDS = frozenset(
    {
        InstKind.ADD,
        InstKind.MUL,
        InstKind.AND,
        InstKind.OR,
        InstKind.XOR,
        InstKind.EQ,
        InstKind.NE,
    }
)

_BY_NAME = {kind.value: kind for kind in InstKind}
