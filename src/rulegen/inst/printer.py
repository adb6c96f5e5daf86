"""Render rules in the textual rule notation.

::

    %x:i8 = var (knownBits=xxxxxxx0)
    %0:i8 = add %x, 4:i8
    pc %1 1:i1
    infer %0
    %2:i8 = ...
    result %2

With ``print_names=False`` every value, variables included, is numbered in
definition order. That form ignores naming entirely and serves as the
canonical key when deduplicating rules.
"""

from __future__ import annotations

import typing

from rulegen.core.bits import to_signed
from rulegen.inst.facts import VarFacts
from rulegen.inst.inst import Inst
from rulegen.inst.rule import Block, InstMapping, Rule
from rulegen.inst.traversal import get_vars


def format_facts(facts: VarFacts, width: int) -> str:
    parts = []
    if facts.known_zero or facts.known_one:
        parts.append(f"(knownBits={facts.known_bits(width)})")
    if facts.non_negative:
        parts.append("(nonNegative)")
    if facts.negative:
        parts.append("(negative)")
    if facts.non_zero:
        parts.append("(nonZero)")
    if facts.power_of_two:
        parts.append("(powerOfTwo)")
    if facts.num_sign_bits > 1:
        parts.append(f"(signBits={facts.num_sign_bits})")
    if facts.range is not None and not facts.range.is_full_set:
        parts.append(f"(range={facts.range})")
    return " ".join(parts)


class RuleRenderer:
    """Assigns value names and accumulates definition lines for one rule."""

    def __init__(
        self,
        print_names: bool = True,
        facts: typing.Mapping[Inst, VarFacts] | None = None,
        reserved: typing.Iterable[str] = (),
    ):
        self.print_names = print_names
        self.facts = facts or {}
        self.lines: list[str] = []
        self._names: dict[Inst, str] = {}
        self._blocks: dict[Block, str] = {}
        # Variable names that numbered values must not shadow.
        self._reserved: set[str] = set(reserved) if print_names else set()
        self._used: set[str] = set()
        self._next = 0

    def _fresh_number(self) -> str:
        while str(self._next) in self._reserved or str(self._next) in self._used:
            self._next += 1
        return str(self._next)

    def _name_for(self, inst: Inst) -> str:
        if self.print_names and inst.is_var and inst.name and inst.name not in self._used:
            name = inst.name
        else:
            name = self._fresh_number()
        self._used.add(name)
        return name

    def operand(self, inst: Inst) -> str:
        if inst.is_const:
            return f"{to_signed(inst.value, inst.width)}:i{inst.width}"
        self.define(inst)
        return f"%{self._names[inst]}"

    def define(self, root: Inst) -> None:
        """Emit definition lines for *root* and everything below it, operands first."""
        stack: list[tuple[Inst, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if node.is_const or node in self._names:
                continue
            if node.is_var:
                name = self._name_for(node)
                self._names[node] = name
                line = f"%{name}:i{node.width} = var"
                attrs = format_facts(self.facts.get(node, VarFacts()), node.width)
                self.lines.append(f"{line} {attrs}" if attrs else line)
                continue
            if not expanded:
                stack.append((node, True))
                stack.extend((op, False) for op in reversed(node.ops))
                continue
            name = self._name_for(node)
            self._names[node] = name
            args = ", ".join(self.operand(op) for op in node.ops)
            self.lines.append(f"%{name}:i{node.width} = {node.kind.value} {args}")

    def block(self, block: Block) -> str:
        name = self._blocks.get(block)
        if name is None:
            if self.print_names and block.name not in self._used | self._reserved:
                name = block.name
            else:
                name = self._fresh_number()
            self._used.add(name)
            self._blocks[block] = name
            self.lines.append(f"%{name} = block {block.num_preds}")
        return f"%{name}"

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


def _var_names(roots: typing.Iterable[Inst]) -> set[str]:
    return {var.name for var in get_vars(*roots) if var.name}


def render_rule(rule: Rule, print_names: bool = True) -> str:
    renderer = RuleRenderer(
        print_names,
        rule.facts,
        _var_names(rule.roots()) if print_names else (),
    )
    for pc in rule.pcs:
        guard = renderer.operand(pc.guard)
        expected = renderer.operand(pc.expected)
        renderer.lines.append(f"pc {guard} {expected}")
    for bpc in rule.block_pcs:
        block = renderer.block(bpc.block)
        guard = renderer.operand(bpc.pc.guard)
        expected = renderer.operand(bpc.pc.expected)
        renderer.lines.append(f"blockpc {block} {bpc.pred_index} {guard} {expected}")
    renderer.lines.append(f"infer {renderer.operand(rule.lhs)}")
    renderer.lines.append(f"result {renderer.operand(rule.rhs)}")
    return renderer.text()


def render_mapping(mapping: InstMapping, print_names: bool = True) -> str:
    return render_rule(Rule(mapping), print_names)


def render_inst(inst: Inst, print_names: bool = True) -> str:
    """Definition lines for a lone expression, closed by ``infer``."""
    renderer = RuleRenderer(print_names, reserved=_var_names([inst]) if print_names else ())
    renderer.lines.append(f"infer {renderer.operand(inst)}")
    return renderer.text()


def canonical_text(rule: Rule) -> str:
    """Name-independent rendering used as a deduplication key."""
    return render_rule(rule, print_names=False)
