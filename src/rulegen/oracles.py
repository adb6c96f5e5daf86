"""Oracle interfaces consumed by the generalization passes.

The passes never talk to a solver directly. They are handed objects that
satisfy the protocols below, which keeps them testable with scripted fakes
and lets a different solver be plugged in without touching pass logic.

Negative answers ("not valid", "no constants", "no precondition") are
ordinary return values, never exceptions.

Backend implementations live in :mod:`rulegen.backends`.
"""

from __future__ import annotations

import typing
from dataclasses import dataclass, field
from typing import Dict, List, Protocol, runtime_checkable

from rulegen.inst import ConstantRange, Inst, InstContext, InstMapping, KnownBits, Rule

# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class ValidityResult:
    """Outcome of a validity query.

    Attributes:
        valid: True if the mapping holds for every input satisfying the guard.
        counterexample: When not valid, a value for each variable that
            demonstrates the difference. Empty when valid or when the backend
            could not produce one.
    """

    valid: bool
    counterexample: Dict[Inst, int] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class PreconditionResult:
    """Outcome of a weakest-precondition query.

    ``found`` with both lists empty means the rule is valid as it stands.
    Otherwise each list element is one sufficient precondition (a disjunct):
    a set of facts that, added to the rule, makes it valid.
    """

    found: bool
    known_bits: List[Dict[Inst, KnownBits]] = field(default_factory=list)
    ranges: List[Dict[Inst, ConstantRange]] = field(default_factory=list)

    @property
    def needs_nothing(self) -> bool:
        return self.found and not self.known_bits and not self.ranges


NOT_FOUND = PreconditionResult(found=False)


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class VerificationOracle(Protocol):
    """Answers validity and precondition questions about rules."""

    def is_valid(
        self, rule: Rule, mapping: InstMapping | None = None
    ) -> ValidityResult:
        """Is ``mapping`` (default: the rule's own) valid under the rule's guard and facts?"""
        ...

    def abstract_precondition(
        self, rule: Rule, mapping: InstMapping | None = None
    ) -> PreconditionResult:
        """Find known-bits or range facts on the variables that make the mapping valid."""
        ...


@runtime_checkable
class EnumerationOracle(Protocol):
    """Produces candidate expressions over a set of inputs."""

    def generate_exprs(
        self,
        ctx: InstContext,
        inputs: typing.Sequence[Inst],
        size_bound: int,
        width: int,
    ) -> List[Inst]:
        """Candidate expressions of *width* bits using at most *size_bound* operators.

        Candidates may contain synthesis holes (variables whose name starts
        with ``reservedconst_``). The order is deterministic.
        """
        ...


@runtime_checkable
class ConstantSynthesisOracle(Protocol):
    """Fills synthesis holes with constants that make a mapping valid."""

    def synthesize(
        self,
        rule: Rule,
        mapping: InstMapping,
        holes: typing.Sequence[Inst],
        max_attempts: int = 30,
        cex_budget: int = 10,
        avoid_trivial: bool = True,
    ) -> Dict[Inst, int] | None:
        """Return a value for every hole, or None when no assignment was found."""
        ...


# =============================================================================
# Bundle
# =============================================================================


@dataclass
class Oracles:
    """The three oracles a generalization run needs, passed around together."""

    verifier: VerificationOracle
    enumerator: EnumerationOracle
    synthesizer: ConstantSynthesisOracle


def get_default_oracles(timeout_ms: int = 0) -> Oracles:
    """Get the default z3-backed oracles.

    Raises:
        Z3Exception: If z3 is not installed.
    """
    from rulegen.backends.enumerate import BottomUpEnumerator
    from rulegen.backends.z3 import Z3ConstantSynthesizer, Z3VerificationOracle

    verifier = Z3VerificationOracle(timeout_ms=timeout_ms)
    return Oracles(
        verifier=verifier,
        enumerator=BottomUpEnumerator(),
        synthesizer=Z3ConstantSynthesizer(verifier, timeout_ms=timeout_ms),
    )
