"""Operator-overloading front end for building instruction DAGs.

>>> from rulegen.inst.inst import InstContext
>>> ctx = InstContext()
>>> x = Builder.var(ctx, "x", 8)
>>> lhs = ((x + 4) * 3).inst
>>> lhs.kind.value, lhs.width
('mul', 8)

Python's ``==`` keeps its identity meaning; comparisons are spelled
``x.eq(y)``, ``x.ult(y)`` and so on.
"""

from __future__ import annotations

import typing

from rulegen.inst.inst import Inst, InstContext
from rulegen.inst.kinds import InstKind

Operand = typing.Union["Builder", Inst, int]


class Builder:
    __slots__ = ("ctx", "inst")

    def __init__(self, ctx: InstContext, inst: Inst):
        self.ctx = ctx
        self.inst = inst

    @classmethod
    def var(cls, ctx: InstContext, name: str, width: int) -> "Builder":
        return cls(ctx, ctx.create_var(width, name))

    @classmethod
    def const(cls, ctx: InstContext, value: int, width: int) -> "Builder":
        return cls(ctx, ctx.get_const(value, width))

    @property
    def width(self) -> int:
        return self.inst.width

    def __call__(self) -> Inst:
        return self.inst

    def __repr__(self) -> str:
        return f"Builder({self.inst!r})"

    def _operand(self, other: Operand, width: int | None = None) -> Inst:
        if isinstance(other, Builder):
            return other.inst
        if isinstance(other, Inst):
            return other
        if isinstance(other, int):
            return self.ctx.get_const(other, width if width is not None else self.width)
        raise TypeError(f"Cannot use {type(other).__name__} as an operand")

    def _binary(self, kind: InstKind, lhs: Operand, rhs: Operand) -> "Builder":
        a = self._operand(lhs)
        b = self._operand(rhs, a.width)
        width = 1 if kind.is_comparison else a.width
        return Builder(self.ctx, self.ctx.get_inst(kind, width, (a, b)))

    # Arithmetic
    def __add__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.ADD, self, other)

    def __radd__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.ADD, self._operand(other), self)

    def __sub__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SUB, self, other)

    def __rsub__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SUB, self._operand(other), self)

    def __mul__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.MUL, self, other)

    def __rmul__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.MUL, self._operand(other), self)

    def __neg__(self) -> "Builder":
        return self._binary(InstKind.SUB, 0, self)

    def udiv(self, other: Operand) -> "Builder":
        return self._binary(InstKind.UDIV, self, other)

    def sdiv(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SDIV, self, other)

    def urem(self, other: Operand) -> "Builder":
        return self._binary(InstKind.UREM, self, other)

    def srem(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SREM, self, other)

    # Bitwise
    def __and__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.AND, self, other)

    def __rand__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.AND, self._operand(other), self)

    def __or__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.OR, self, other)

    def __ror__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.OR, self._operand(other), self)

    def __xor__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.XOR, self, other)

    def __rxor__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.XOR, self._operand(other), self)

    def __invert__(self) -> "Builder":
        return self._binary(InstKind.XOR, self, -1)

    def __lshift__(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SHL, self, other)

    def __rshift__(self, other: Operand) -> "Builder":
        """Logical shift right; use :meth:`ashr` for the arithmetic one."""
        return self._binary(InstKind.LSHR, self, other)

    def ashr(self, other: Operand) -> "Builder":
        return self._binary(InstKind.ASHR, self, other)

    # Comparisons
    def eq(self, other: Operand) -> "Builder":
        return self._binary(InstKind.EQ, self, other)

    def ne(self, other: Operand) -> "Builder":
        return self._binary(InstKind.NE, self, other)

    def ult(self, other: Operand) -> "Builder":
        return self._binary(InstKind.ULT, self, other)

    def slt(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SLT, self, other)

    def ule(self, other: Operand) -> "Builder":
        return self._binary(InstKind.ULE, self, other)

    def sle(self, other: Operand) -> "Builder":
        return self._binary(InstKind.SLE, self, other)

    # Casts and select
    def _cast(self, kind: InstKind, width: int) -> "Builder":
        return Builder(self.ctx, self.ctx.get_inst(kind, width, (self.inst,)))

    def zext(self, width: int) -> "Builder":
        return self._cast(InstKind.ZEXT, width)

    def sext(self, width: int) -> "Builder":
        return self._cast(InstKind.SEXT, width)

    def trunc(self, width: int) -> "Builder":
        return self._cast(InstKind.TRUNC, width)

    def select(self, if_true: Operand, if_false: Operand) -> "Builder":
        """``self ? if_true : if_false``; ``self`` must be i1."""
        a = self._operand(if_true)
        b = self._operand(if_false, a.width)
        return Builder(
            self.ctx, self.ctx.get_inst(InstKind.SELECT, a.width, (self.inst, a, b))
        )
