"""z3 backend: validity checks, precondition inference and constant synthesis.

Key exports:
    Z3InstVisitor          - converts an Inst DAG to z3 bit-vector terms
    Z3VerificationOracle   - is_valid / abstract_precondition
    Z3ConstantSynthesizer  - CEGIS loop filling ``reservedconst_`` holes

Every query is a plain ``z3.Solver`` check of ``guard /\\ lhs != rhs``: unsat
means the mapping is valid, sat yields a counterexample, unknown (timeout)
is reported as "not valid" so callers stay sound.
"""

from __future__ import annotations

import collections
import functools
import typing
from typing import Dict, List

from rulegen.core import getLogger
from rulegen.core.bits import mask
from rulegen.errors import OracleError, Z3Exception
from rulegen.inst import (
    ConstantRange,
    Inst,
    InstKind,
    InstMapping,
    KnownBits,
    Rule,
    VarFacts,
    collect_insts,
    get_vars,
)
from rulegen.oracles import NOT_FOUND, PreconditionResult, ValidityResult

logger = getLogger("rulegen.oracle")
query_logger = getLogger("rulegen.z3_queries")

try:
    import z3

    Z3_INSTALLED = True
except ImportError:
    logger.info("Z3 features disabled. Install z3-solver to enable them")
    Z3_INSTALLED = False


def requires_z3_installed(func: typing.Callable[..., typing.Any]):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not Z3_INSTALLED:
            raise Z3Exception("Z3 is not installed")
        return func(*args, **kwargs)

    return wrapper


# =============================================================================
# Z3InstVisitor - Converts Inst DAGs to z3
# =============================================================================


class Z3InstVisitor:
    """Builds z3 terms for instruction DAGs.

    One visitor is shared by every root of a query so that variables and
    common subterms map to the same z3 objects. Comparisons produce 1-bit
    vectors, matching their ``i1`` width in the DAG.
    """

    @requires_z3_installed
    def __init__(self):
        self.var_map: Dict[Inst, z3.BitVecRef] = {}
        self._cache: Dict[Inst, z3.BitVecRef] = {}

    def var(self, inst: Inst) -> z3.BitVecRef:
        if inst not in self.var_map:
            # The handle keeps same-named variables of different widths apart.
            self.var_map[inst] = z3.BitVec(f"{inst.name}_{inst.handle}", inst.width)
        return self.var_map[inst]

    def visit(self, root: Inst) -> z3.BitVecRef:
        stack: list[tuple[Inst, bool]] = [(root, False)]
        while stack:
            node, expanded = stack.pop()
            if node in self._cache:
                continue
            if node.ops and not expanded:
                stack.append((node, True))
                stack.extend((op, False) for op in node.ops if op not in self._cache)
                continue
            self._cache[node] = self._convert(node, [self._cache[op] for op in node.ops])
        return self._cache[root]

    def _convert(self, node: Inst, args: List[z3.BitVecRef]) -> z3.BitVecRef:
        match node.kind:
            case InstKind.VAR:
                return self.var(node)
            case InstKind.CONST:
                return z3.BitVecVal(node.value, node.width)

            # Binary arithmetic operations
            case InstKind.ADD:
                return args[0] + args[1]
            case InstKind.SUB:
                return args[0] - args[1]
            case InstKind.MUL:
                return args[0] * args[1]
            case InstKind.UDIV:
                return z3.UDiv(args[0], args[1])
            case InstKind.SDIV:
                return args[0] / args[1]
            case InstKind.UREM:
                return z3.URem(args[0], args[1])
            case InstKind.SREM:
                return z3.SRem(args[0], args[1])

            # Binary bitwise operations
            case InstKind.AND:
                return args[0] & args[1]
            case InstKind.OR:
                return args[0] | args[1]
            case InstKind.XOR:
                return args[0] ^ args[1]
            case InstKind.SHL:
                return args[0] << args[1]
            case InstKind.LSHR:
                return z3.LShR(args[0], args[1])
            case InstKind.ASHR:
                return args[0] >> args[1]

            # Comparisons (return i1)
            case InstKind.EQ:
                return _bool_to_bv(args[0] == args[1])
            case InstKind.NE:
                return _bool_to_bv(args[0] != args[1])
            case InstKind.ULT:
                return _bool_to_bv(z3.ULT(args[0], args[1]))
            case InstKind.SLT:
                return _bool_to_bv(args[0] < args[1])
            case InstKind.ULE:
                return _bool_to_bv(z3.ULE(args[0], args[1]))
            case InstKind.SLE:
                return _bool_to_bv(args[0] <= args[1])

            # Casts
            case InstKind.ZEXT:
                return z3.ZeroExt(node.width - node.ops[0].width, args[0])
            case InstKind.SEXT:
                return z3.SignExt(node.width - node.ops[0].width, args[0])
            case InstKind.TRUNC:
                return z3.Extract(node.width - 1, 0, args[0])

            case InstKind.SELECT:
                return z3.If(args[0] == z3.BitVecVal(1, 1), args[1], args[2])

            case _:
                raise OracleError(f"Unsupported instruction in Z3InstVisitor: {node.kind}")


def _bool_to_bv(cond: z3.BoolRef) -> z3.BitVecRef:
    return z3.If(cond, z3.BitVecVal(1, 1), z3.BitVecVal(0, 1))


def fact_constraints(term: z3.BitVecRef, facts: VarFacts, width: int) -> list[z3.BoolRef]:
    """Translate the facts attached to one variable into z3 assumptions."""
    constraints = []
    if facts.known_zero:
        constraints.append(term & facts.known_zero == 0)
    if facts.known_one:
        constraints.append(term & facts.known_one == facts.known_one)
    if facts.non_negative:
        constraints.append(term >= 0)
    if facts.negative:
        constraints.append(term < 0)
    if facts.non_zero:
        constraints.append(term != 0)
    if facts.power_of_two:
        constraints.append(z3.And(term != 0, term & (term - 1) == 0))
    if facts.num_sign_bits > 1:
        top = term >> (width - facts.num_sign_bits)
        constraints.append(z3.Or(top == 0, top == mask(width)))
    if facts.range is not None and not facts.range.is_full_set:
        constraints.append(range_constraint(term, facts.range))
    return constraints


def range_constraint(term: z3.BitVecRef, value_range: ConstantRange) -> z3.BoolRef:
    lower = z3.BitVecVal(value_range.lower, value_range.width)
    if value_range.upper > mask(value_range.width):
        return z3.UGE(term, lower)
    upper = z3.BitVecVal(value_range.upper, value_range.width)
    if value_range.is_wrapped:
        return z3.Or(z3.UGE(term, lower), z3.ULT(term, upper))
    return z3.And(z3.UGE(term, lower), z3.ULT(term, upper))


# =============================================================================
# Z3VerificationOracle - Implements VerificationOracle protocol
# =============================================================================


class Z3VerificationOracle:
    """z3 implementation of the VerificationOracle protocol.

    Usage:
        >>> from rulegen.inst import InstContext, parse_rule
        >>> ctx = InstContext()
        >>> rule = parse_rule('''
        ... %x:i8 = var
        ... %0:i8 = xor %x, %x
        ... infer %0
        ... result 0:i8
        ... ''', ctx)
        >>> Z3VerificationOracle().is_valid(rule).valid
        True
    """

    @requires_z3_installed
    def __init__(self, timeout_ms: int = 0):
        self.timeout_ms = timeout_ms

    def make_solver(self) -> z3.Solver:
        solver = z3.Solver()
        if self.timeout_ms > 0:
            solver.set("timeout", self.timeout_ms)
        return solver

    def guard_constraints(
        self, rule: Rule, visitor: Z3InstVisitor, mapping: InstMapping | None = None
    ) -> list[z3.BoolRef]:
        """Path conditions (block ones included) plus variable facts, as a conjunction."""
        mapping = mapping or rule.mapping
        constraints = [
            visitor.visit(pc.guard) == visitor.visit(pc.expected)
            for pc in rule.guard_pcs()
        ]
        for var in _rule_vars(rule, mapping):
            facts = rule.facts_for(var)
            if not facts.is_empty:
                constraints.extend(fact_constraints(visitor.var(var), facts, var.width))
        return constraints

    def check(self, solver: z3.Solver) -> bool:
        """Return True for sat, False for unsat.

        Raises:
            OracleError: If z3 answers unknown (usually a timeout).
        """
        if query_logger.debug_on:
            query_logger.debug("%s", solver.sexpr())
        result = solver.check()
        if result == z3.unknown:
            raise OracleError(f"z3 returned unknown: {solver.reason_unknown()}")
        return result == z3.sat

    def is_valid(
        self, rule: Rule, mapping: InstMapping | None = None
    ) -> ValidityResult:
        mapping = mapping or rule.mapping
        try:
            visitor = Z3InstVisitor()
            lhs = visitor.visit(mapping.lhs)
            rhs = visitor.visit(mapping.rhs)
            solver = self.make_solver()
            solver.add(*self.guard_constraints(rule, visitor, mapping))
            solver.add(lhs != rhs)
            if not self.check(solver):
                return ValidityResult(True)
        except OracleError as e:
            logger.debug("Validity query failed: %s", e)
            return ValidityResult(False)

        model = solver.model()
        counterexample = {
            var: model.eval(visitor.var(var), model_completion=True).as_long()
            for var in _rule_vars(rule, mapping)
        }
        return ValidityResult(False, counterexample)

    def abstract_precondition(
        self, rule: Rule, mapping: InstMapping | None = None
    ) -> PreconditionResult:
        """Look for facts on the LHS variables under which the mapping holds.

        Known bits are tried first, one bit at a time; each sufficient bit is
        reported as its own disjunct. Failing that, the widest unsigned range
        ``[0, 2**k)`` per variable is tried. Counterexamples collected along
        the way prune candidates that cannot possibly help.
        """
        mapping = mapping or rule.mapping
        rule = rule.with_mapping(mapping)
        first = self.is_valid(rule)
        if first.valid:
            return PreconditionResult(True)
        if not first.counterexample:
            return NOT_FOUND

        counterexamples = [first.counterexample]
        candidates = [v for v in get_vars(mapping.lhs) if not v.is_reserved_const]

        known_bits = self._known_bits_preconditions(rule, candidates, counterexamples)
        if known_bits:
            return PreconditionResult(True, known_bits=known_bits)
        ranges = self._range_preconditions(rule, candidates, counterexamples)
        if ranges:
            return PreconditionResult(True, ranges=ranges)
        return NOT_FOUND

    def _known_bits_preconditions(
        self, rule: Rule, candidates: list[Inst], counterexamples: list[dict[Inst, int]]
    ) -> list[dict[Inst, KnownBits]]:
        found = []
        for var in candidates:
            existing = rule.facts_for(var)
            for bit in range(var.width):
                bit_mask = 1 << bit
                if (existing.known_zero | existing.known_one) & bit_mask:
                    continue
                seen = {(cex[var] >> bit) & 1 for cex in counterexamples if var in cex}
                if len(seen) != 1:
                    # Either no information or both polarities already fail.
                    continue
                if seen.pop():
                    known = KnownBits(var.width, zero=bit_mask)
                else:
                    known = KnownBits(var.width, one=bit_mask)
                attempt = self.is_valid(rule.with_known_bits({var: known}))
                if attempt.valid:
                    logger.debug("Precondition %%%s = %s suffices", var.name, known)
                    found.append({var: known})
                elif attempt.counterexample:
                    counterexamples.append(attempt.counterexample)
        return found

    def _range_preconditions(
        self, rule: Rule, candidates: list[Inst], counterexamples: list[dict[Inst, int]]
    ) -> list[dict[Inst, ConstantRange]]:
        found = []
        for var in candidates:
            if rule.facts_for(var).range is not None:
                continue
            for log2 in range(var.width - 1, -1, -1):
                upper = 1 << log2
                if any(cex[var] < upper for cex in counterexamples if var in cex):
                    continue
                value_range = ConstantRange(var.width, 0, upper)
                attempt = self.is_valid(rule.with_ranges({var: value_range}))
                if attempt.valid:
                    logger.debug("Precondition %%%s in %s suffices", var.name, value_range)
                    found.append({var: value_range})
                    break
                if attempt.counterexample:
                    counterexamples.append(attempt.counterexample)
        return found


def _rule_vars(rule: Rule, mapping: InstMapping) -> list[Inst]:
    roots = [mapping.lhs, mapping.rhs]
    for pc in rule.guard_pcs():
        roots.extend((pc.guard, pc.expected))
    return get_vars(*roots)


# =============================================================================
# Z3ConstantSynthesizer - Implements ConstantSynthesisOracle protocol
# =============================================================================


class Z3ConstantSynthesizer:
    """Counterexample-guided search for hole values.

    Each round asks a synthesis solver for hole values that satisfy the rule
    on the retained counterexamples and differ from every value already
    tried, then checks the proposal for all inputs. A failed check
    contributes its counterexample; only the newest ``cex_budget`` of them are
    retained. ``max_attempts`` bounds the number of rounds.
    """

    @requires_z3_installed
    def __init__(self, verifier: Z3VerificationOracle | None = None, timeout_ms: int = 0):
        self.verifier = verifier or Z3VerificationOracle(timeout_ms=timeout_ms)

    def synthesize(
        self,
        rule: Rule,
        mapping: InstMapping,
        holes: typing.Sequence[Inst],
        max_attempts: int = 30,
        cex_budget: int = 10,
        avoid_trivial: bool = True,
    ) -> Dict[Inst, int] | None:
        visitor = Z3InstVisitor()
        guard = self.verifier.guard_constraints(rule, visitor, mapping)
        spec = z3.Implies(
            z3.And(*guard) if guard else z3.BoolVal(True),
            visitor.visit(mapping.lhs) == visitor.visit(mapping.rhs),
        )
        hole_terms = [visitor.var(hole) for hole in holes]
        input_terms = [visitor.var(v) for v in _rule_vars(rule, mapping) if v not in holes]

        banned = []
        if avoid_trivial:
            for hole, term in zip(holes, hole_terms):
                banned.extend(term != value for value in sorted(_trivial_values(hole, mapping)))
        examples: collections.deque = collections.deque(maxlen=max(cex_budget, 0))
        tried: list[z3.BoolRef] = []

        try:
            for attempt in range(max_attempts):
                synth = self.verifier.make_solver()
                synth.add(*banned, *tried, *examples)
                if not self.verifier.check(synth):
                    logger.debug("No further candidates after %d attempt(s)", attempt)
                    return None
                model = synth.model()
                values = {
                    hole: model.eval(term, model_completion=True).as_long()
                    for hole, term in zip(holes, hole_terms)
                }
                proposal = [
                    (term, z3.BitVecVal(values[hole], hole.width))
                    for hole, term in zip(holes, hole_terms)
                ]

                check = self.verifier.make_solver()
                check.add(z3.Not(z3.substitute(spec, *proposal)))
                if not self.verifier.check(check):
                    logger.debug(
                        "Synthesized %s in %d attempt(s)",
                        ", ".join(f"%{h.name}={v}" for h, v in values.items()),
                        attempt + 1,
                    )
                    return values

                tried.append(z3.Or(*[term != value for term, value in proposal]))
                if input_terms and examples.maxlen:
                    cex_model = check.model()
                    example = [
                        (term, cex_model.eval(term, model_completion=True))
                        for term in input_terms
                    ]
                    examples.append(z3.substitute(spec, *example))
        except OracleError as e:
            logger.debug("Synthesis query failed: %s", e)
            return None
        logger.debug("Gave up after %d attempts", max_attempts)
        return None


_ZERO_IS_TRIVIAL = frozenset(
    {
        InstKind.ADD,
        InstKind.SUB,
        InstKind.OR,
        InstKind.XOR,
        InstKind.SHL,
        InstKind.LSHR,
        InstKind.ASHR,
    }
)
_ONE_IS_TRIVIAL = frozenset({InstKind.MUL, InstKind.UDIV, InstKind.SDIV})


def _trivial_values(hole: Inst, mapping: InstMapping) -> set[int]:
    """Hole values that make an operator using the hole an identity."""
    values = set()
    for node in collect_insts(mapping.rhs):
        if hole not in node.ops:
            continue
        if node.kind in _ZERO_IS_TRIVIAL:
            values.add(0)
        elif node.kind in _ONE_IS_TRIVIAL:
            values.add(1)
        elif node.kind is InstKind.AND:
            values.add(mask(hole.width))
    return values
