"""Width resweep: re-instantiate a single-variable rule at other bit widths.

Each width from 1 to 63 yields one candidate built by retyping the variable
and recomputing every instruction's width from its operands. Candidates are
reported without validity checking; verifying them is left to the caller.
"""

from __future__ import annotations

import dataclasses

from rulegen.core import ConfigConstants, getLogger
from rulegen.errors import UnsupportedOperationError
from rulegen.inst import Inst, InstContext, InstKind, InstMapping, Rule, get_vars

logger = getLogger("rulegen.width")

_SAME_WIDTH = frozenset(
    {InstKind.ADD, InstKind.SUB, InstKind.MUL, InstKind.AND, InstKind.OR, InstKind.XOR}
)
_BOOLEAN = frozenset(
    {InstKind.EQ, InstKind.NE, InstKind.ULT, InstKind.SLT, InstKind.ULE, InstKind.SLE}
)


@dataclasses.dataclass(frozen=True)
class WidthVariant:
    width: int
    mapping: InstMapping


def infer_width(inst: Inst, ops: list[Inst]) -> int:
    if inst.kind in _SAME_WIDTH:
        return ops[0].width
    if inst.kind in _BOOLEAN:
        return 1
    raise UnsupportedOperationError(f"Width inference for {inst.kind.value} is not implemented")


def rebuild_with_width(
    root: Inst, ctx: InstContext, var_widths: dict[Inst, Inst]
) -> Inst:
    """Copy *root* with variables replaced by their retyped versions.

    *var_widths* maps each original variable to its replacement and doubles as
    the memo for the walk.
    """
    memo = dict(var_widths)
    stack: list[tuple[Inst, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if node in memo:
            continue
        if node.is_var:
            raise UnsupportedOperationError(f"Variable %{node.name} is not bound by the LHS")
        if node.is_const:
            raise UnsupportedOperationError("Constants are not supported by the width resweep")
        if not expanded:
            stack.append((node, True))
            stack.extend((op, False) for op in node.ops if op not in memo)
            continue
        ops = [memo[op] for op in node.ops]
        memo[node] = ctx.get_inst(node.kind, infer_width(node, ops), ops)
    return memo[root]


def generalize_width(rule: Rule, ctx: InstContext) -> list[WidthVariant]:
    """One candidate per width in [MIN_WIDTH, MAX_WIDTH).

    Raises:
        UnsupportedOperationError: If the LHS has more than one variable, or
            the rule uses constants or operators outside the supported set.
    """
    inputs = get_vars(rule.lhs)
    if len(inputs) > 1:
        raise UnsupportedOperationError("Multiple variables unimplemented.")
    if not inputs:
        raise UnsupportedOperationError("The LHS has no variable to retype")
    (var,) = inputs

    variants = []
    for width in range(ConfigConstants.MIN_WIDTH, ConfigConstants.MAX_WIDTH):
        # Facts on the variable are not carried over to the new width.
        retyped = {var: ctx.create_var(width, var.name)}
        lhs = rebuild_with_width(rule.lhs, ctx, retyped)
        rhs = rebuild_with_width(rule.rhs, ctx, retyped)
        variants.append(WidthVariant(width, InstMapping(lhs, rhs)))
    logger.info("Generated %d width variant(s) for %%%s", len(variants), var.name)
    return variants
