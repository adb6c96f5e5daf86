"""Rewrite rules: a mapping from a LHS to a RHS plus the guard it holds under."""

from __future__ import annotations

import dataclasses
import typing

from rulegen.inst.facts import ConstantRange, KnownBits, NO_FACTS, VarFacts
from rulegen.inst.inst import Inst


@dataclasses.dataclass(frozen=True, slots=True)
class InstMapping:
    """``lhs -> rhs``. Both sides have the same width."""

    lhs: Inst
    rhs: Inst

    def __post_init__(self):
        if self.lhs.width != self.rhs.width:
            raise ValueError(
                f"Mapping width mismatch: i{self.lhs.width} -> i{self.rhs.width}"
            )


@dataclasses.dataclass(frozen=True, slots=True)
class PathCondition:
    """The rule only applies when ``guard`` evaluates to ``expected``."""

    guard: Inst
    expected: Inst


@dataclasses.dataclass(frozen=True, slots=True)
class Block:
    name: str
    num_preds: int


@dataclasses.dataclass(frozen=True, slots=True)
class BlockPathCondition:
    """A path condition attached to one predecessor edge of a block."""

    block: Block
    pred_index: int
    pc: PathCondition


@dataclasses.dataclass(frozen=True)
class Rule:
    """A candidate rewrite: mapping, guard and per-variable facts.

    Rules are values. Every pass builds new rules instead of editing the
    input, so a rule may be shared freely between results.
    """

    mapping: InstMapping
    pcs: tuple[PathCondition, ...] = ()
    block_pcs: tuple[BlockPathCondition, ...] = ()
    facts: typing.Mapping[Inst, VarFacts] = dataclasses.field(default_factory=dict)

    __hash__ = None  # facts is a dict

    @property
    def lhs(self) -> Inst:
        return self.mapping.lhs

    @property
    def rhs(self) -> Inst:
        return self.mapping.rhs

    def guard_pcs(self) -> list[PathCondition]:
        """Every path condition, including the block ones, as one conjunction."""
        return list(self.pcs) + [bpc.pc for bpc in self.block_pcs]

    def roots(self) -> list[Inst]:
        """All DAG roots, LHS first, then RHS, then guards."""
        roots = [self.lhs, self.rhs]
        for pc in self.guard_pcs():
            roots.extend((pc.guard, pc.expected))
        return roots

    def facts_for(self, var: Inst) -> VarFacts:
        return self.facts.get(var, NO_FACTS)

    def vars(self) -> list[Inst]:
        """Distinct variables in deterministic order."""
        from rulegen.inst.traversal import get_vars

        return get_vars(*self.roots())

    def dangling_vars(self, inputs: typing.Iterable[Inst] = ()) -> list[Inst]:
        """Variables used by the RHS or guard but bound neither by the LHS nor *inputs*."""
        from rulegen.inst.traversal import get_vars

        bound = set(get_vars(self.lhs))
        bound.update(inputs)
        others = [self.rhs]
        for pc in self.guard_pcs():
            others.extend((pc.guard, pc.expected))
        return [v for v in get_vars(*others) if v not in bound]

    def with_mapping(self, mapping: InstMapping) -> "Rule":
        return dataclasses.replace(self, mapping=mapping)

    def with_facts(self, updates: typing.Mapping[Inst, VarFacts]) -> "Rule":
        facts = dict(self.facts)
        facts.update(updates)
        return dataclasses.replace(self, facts=facts)

    def with_known_bits(self, known: typing.Mapping[Inst, KnownBits]) -> "Rule":
        return self.with_facts(
            {var: self.facts_for(var).with_known_bits(kb) for var, kb in known.items()}
        )

    def with_ranges(self, ranges: typing.Mapping[Inst, ConstantRange]) -> "Rule":
        return self.with_facts(
            {var: self.facts_for(var).with_range(cr) for var, cr in ranges.items()}
        )


ParsedReplacement = Rule
