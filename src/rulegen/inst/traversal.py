"""DAG walks and copy-with-substitution.

All walks use explicit worklists so deep expressions cannot hit the
recursion limit. Results come back in a deterministic order (never a bare
``set``), because pass output order depends on them.
"""

from __future__ import annotations

import typing

from rulegen.core.bits import mask, to_signed
from rulegen.inst.inst import Inst, InstContext
from rulegen.inst.kinds import InstKind
from rulegen.inst.rule import BlockPathCondition, InstMapping, PathCondition, Rule


def collect_insts(*roots: Inst) -> list[Inst]:
    """Every distinct node reachable from *roots*, in breadth-first discovery order."""
    seen: dict[Inst, None] = {}
    worklist = list(roots)
    index = 0
    for root in roots:
        seen.setdefault(root, None)
    while index < len(worklist):
        node = worklist[index]
        index += 1
        for op in node.ops:
            if op not in seen:
                seen[op] = None
                worklist.append(op)
    return list(seen)


def collect_rule_insts(rule: Rule) -> list[Inst]:
    return collect_insts(*rule.roots())


def find_insts(root: Inst, predicate: typing.Callable[[Inst], bool]) -> list[Inst]:
    """Distinct nodes under *root* satisfying *predicate*.

    Depth-first with an explicit stack; operands are pushed left to right and
    therefore visited last operand first. For ``add(mul(x, 3), 12)`` the
    constants come back as ``[12, 3]``.
    """
    found: list[Inst] = []
    visited: set[Inst] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if node in visited:
            continue
        visited.add(node)
        if predicate(node):
            found.append(node)
        stack.extend(node.ops)
    return found


def get_consts(root: Inst) -> list[Inst]:
    return find_insts(root, lambda i: i.is_const)


def get_reserved_consts(root: Inst) -> list[Inst]:
    return find_insts(root, lambda i: i.is_reserved_const)


def get_vars(*roots: Inst) -> list[Inst]:
    """Distinct variables under *roots*, first root first."""
    found: dict[Inst, None] = {}
    for root in roots:
        for var in find_insts(root, lambda i: i.is_var):
            found.setdefault(var, None)
    return list(found)


def count_insts(root: Inst) -> int:
    """Number of distinct non-leaf nodes; the minimizer's size measure."""
    return sum(1 for node in collect_insts(root) if not node.is_leaf)


def replace(
    root: Inst,
    ctx: InstContext,
    substitutions: typing.Mapping[Inst, Inst],
    memo: dict[Inst, Inst] | None = None,
) -> Inst:
    """Copy *root* with every node in *substitutions* swapped for its image.

    Untouched subtrees are shared with the original. *memo* may be passed to
    share work between several roots of the same rule.
    """
    if memo is None:
        memo = {}
    for key, value in substitutions.items():
        memo.setdefault(key, value)

    stack: list[tuple[Inst, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if node in memo:
            continue
        if node.is_leaf:
            memo[node] = node
            continue
        if not expanded:
            stack.append((node, True))
            stack.extend((op, False) for op in node.ops if op not in memo)
            continue
        new_ops = tuple(memo[op] for op in node.ops)
        if all(new is old for new, old in zip(new_ops, node.ops)):
            memo[node] = node
        else:
            memo[node] = ctx.get_inst(node.kind, node.width, new_ops)
    return memo[root]


def replace_consts(
    root: Inst, ctx: InstContext, values: typing.Mapping[Inst, int]
) -> Inst:
    """Instantiate synthesis holes with concrete constants."""
    return replace(
        root, ctx, {hole: ctx.get_const(value, hole.width) for hole, value in values.items()}
    )


def replace_in_rule(
    rule: Rule, ctx: InstContext, substitutions: typing.Mapping[Inst, Inst]
) -> Rule:
    """Apply *substitutions* across the mapping and every path condition.

    Facts are kept for the variables that survive the rewrite.
    """
    memo: dict[Inst, Inst] = {}

    def sub(node: Inst) -> Inst:
        return replace(node, ctx, substitutions, memo)

    def sub_pc(pc: PathCondition) -> PathCondition:
        return PathCondition(sub(pc.guard), sub(pc.expected))

    mapping = InstMapping(sub(rule.lhs), sub(rule.rhs))
    pcs = tuple(sub_pc(pc) for pc in rule.pcs)
    block_pcs = tuple(
        BlockPathCondition(bpc.block, bpc.pred_index, sub_pc(bpc.pc))
        for bpc in rule.block_pcs
    )
    result = Rule(mapping, pcs, block_pcs)
    live = set(result.vars())
    return Rule(
        mapping,
        pcs,
        block_pcs,
        {var: facts for var, facts in rule.facts.items() if var in live},
    )


def evaluate(root: Inst, values: typing.Mapping[Inst, int]) -> int:
    """Concrete evaluation of *root* given unsigned values for its variables.

    Division by zero follows the SMT-LIB convention so that results agree
    with the solver backends.
    """
    results: dict[Inst, int] = {}
    stack: list[tuple[Inst, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if node in results:
            continue
        if node.is_var:
            results[node] = values[node] & mask(node.width)
            continue
        if node.is_const:
            results[node] = node.value
            continue
        if not expanded:
            stack.append((node, True))
            stack.extend((op, False) for op in node.ops if op not in results)
            continue
        args = [results[op] for op in node.ops]
        results[node] = _apply(node, args) & mask(node.width)
    return results[root]


def _apply(node: Inst, args: list[int]) -> int:
    width = node.ops[0].width
    full = mask(width)
    match node.kind:
        case InstKind.ADD:
            return args[0] + args[1]
        case InstKind.SUB:
            return args[0] - args[1]
        case InstKind.MUL:
            return args[0] * args[1]
        case InstKind.UDIV:
            return full if args[1] == 0 else args[0] // args[1]
        case InstKind.SDIV:
            a, b = to_signed(args[0], width), to_signed(args[1], width)
            if b == 0:
                return 1 if a < 0 else full
            quotient = abs(a) // abs(b)
            return quotient if (a < 0) == (b < 0) else -quotient
        case InstKind.UREM:
            return args[0] if args[1] == 0 else args[0] % args[1]
        case InstKind.SREM:
            a, b = to_signed(args[0], width), to_signed(args[1], width)
            if b == 0:
                return a
            remainder = abs(a) % abs(b)
            return -remainder if a < 0 else remainder
        case InstKind.AND:
            return args[0] & args[1]
        case InstKind.OR:
            return args[0] | args[1]
        case InstKind.XOR:
            return args[0] ^ args[1]
        case InstKind.SHL:
            return 0 if args[1] >= width else args[0] << args[1]
        case InstKind.LSHR:
            return 0 if args[1] >= width else args[0] >> args[1]
        case InstKind.ASHR:
            return to_signed(args[0], width) >> min(args[1], width - 1)
        case InstKind.EQ:
            return int(args[0] == args[1])
        case InstKind.NE:
            return int(args[0] != args[1])
        case InstKind.ULT:
            return int(args[0] < args[1])
        case InstKind.ULE:
            return int(args[0] <= args[1])
        case InstKind.SLT:
            return int(to_signed(args[0], width) < to_signed(args[1], width))
        case InstKind.SLE:
            return int(to_signed(args[0], width) <= to_signed(args[1], width))
        case InstKind.ZEXT | InstKind.TRUNC:
            return args[0]
        case InstKind.SEXT:
            return to_signed(args[0], width)
        case InstKind.SELECT:
            return args[1] if args[0] else args[2]
        case _:
            raise ValueError(f"Cannot evaluate {node.kind.value}")
