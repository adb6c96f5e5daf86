"""Bottom-up enumeration of candidate replacement expressions."""

from __future__ import annotations

import typing

from rulegen.core import getLogger
from rulegen.inst import (
    RESERVED_CONST_PREFIX,
    Inst,
    InstContext,
    InstKind,
)

logger = getLogger("rulegen.oracle")

DEFAULT_OPERATORS = (
    InstKind.ADD,
    InstKind.SUB,
    InstKind.MUL,
    InstKind.AND,
    InstKind.OR,
    InstKind.XOR,
    InstKind.SHL,
    InstKind.LSHR,
)


class BottomUpEnumerator:
    """EnumerationOracle that grows expressions level by level.

    Level 0 holds the inputs (cast to the requested width when needed) and a
    single synthesis hole. Level ``n`` combines two earlier expressions whose
    operator counts add up to ``n - 1``. Commutative operators are only
    generated with operands in handle order, and the hole is never combined
    with itself.

    >>> from rulegen.inst import InstContext
    >>> ctx = InstContext()
    >>> a = ctx.create_var(8, "a")
    >>> [e.kind.value for e in BottomUpEnumerator().generate_exprs(ctx, [a], 0, 8)]
    ['var', 'var']
    """

    def __init__(self, operators: typing.Sequence[InstKind] = DEFAULT_OPERATORS):
        for kind in operators:
            if not kind.is_binary:
                raise ValueError(f"{kind.value} is not a binary operator")
        self.operators = tuple(operators)

    def _leaves(self, ctx: InstContext, inputs: typing.Sequence[Inst], width: int) -> list[Inst]:
        leaves: dict[Inst, None] = {}
        for value in inputs:
            if value.width < width:
                value = ctx.get_inst(InstKind.ZEXT, width, (value,))
            elif value.width > width:
                value = ctx.get_inst(InstKind.TRUNC, width, (value,))
            leaves.setdefault(value, None)
        leaves.setdefault(ctx.fresh_var(width, RESERVED_CONST_PREFIX), None)
        return list(leaves)

    def generate_exprs(
        self,
        ctx: InstContext,
        inputs: typing.Sequence[Inst],
        size_bound: int,
        width: int,
    ) -> list[Inst]:
        levels = [self._leaves(ctx, inputs, width)]
        seen = set(levels[0])
        for size in range(1, size_bound + 1):
            level: list[Inst] = []
            for kind in self.operators:
                for left_size in range(size):
                    right_size = size - 1 - left_size
                    for left in levels[left_size]:
                        for right in levels[right_size]:
                            if not self._accept(kind, left, right):
                                continue
                            expr = ctx.get_inst(kind, width, (left, right))
                            if expr not in seen:
                                seen.add(expr)
                                level.append(expr)
            levels.append(level)
        candidates = [expr for level in levels for expr in level]
        logger.debug(
            "Enumerated %d candidate(s) over %d input(s) at i%d",
            len(candidates),
            len(inputs),
            width,
        )
        return candidates

    @staticmethod
    def _accept(kind: InstKind, left: Inst, right: Inst) -> bool:
        if left.is_reserved_const and right.is_reserved_const:
            return False
        if kind.is_commutative and left.handle > right.handle:
            return False
        return True
