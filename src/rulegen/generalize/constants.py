"""Constant generalization: replace literal constants with symbolic ones.

Given ``mul(add(x, 4), 3) -> add(mul(x, 3), 12)`` the pass looks for rules
such as ``mul(add(x, C1), C2) -> add(mul(x, C2), mul(C1, C2))`` where the
literals on the LHS became opaque variables and the first RHS constant was
rebuilt from them.

Two subsets of LHS constants are symbolized: each constant on its own, and
all of them together. For every subset, candidate RHS expressions over the
symbolic constants come from the enumeration oracle:

* candidates with synthesis holes go to the constant synthesizer; every
  candidate it completes is emitted;
* candidates without holes go to the precondition oracle and are ranked by
  how little they need; only those valid with no precondition are emitted.

Emitted rules keep the input's path conditions and variable facts.
"""

from __future__ import annotations

import dataclasses

from rulegen.core import (
    ConfigConstants,
    GeneralizationStatistics,
    GeneralizeOptions,
    PassEvent,
    getLogger,
)
from rulegen.core.bits import popcount
from rulegen.inst import (
    FAKE_CONST_PREFIX,
    Inst,
    InstContext,
    InstMapping,
    Rule,
    get_consts,
    get_reserved_consts,
    render_mapping,
    replace,
    replace_consts,
)
from rulegen.oracles import Oracles, PreconditionResult

logger = getLogger("rulegen.symbolize")

PASS_NAME = "symbolize"


@dataclasses.dataclass(frozen=True)
class Candidate:
    mapping: InstMapping
    precondition: PreconditionResult
    utility: int


def precondition_utility(result: PreconditionResult) -> int:
    """Score a precondition: higher means weaker, i.e. more widely applicable.

    A rule that needs nothing gets the sentinel score. Otherwise every
    known-bits fact in every disjunct contributes its unknown zero bits plus
    its unknown one bits.
    """
    if result.needs_nothing:
        return ConfigConstants.SENTINEL_UTILITY
    utility = 0
    for disjunct in result.known_bits:
        for known in disjunct.values():
            utility += known.width - popcount(known.zero)
            utility += known.width - popcount(known.one)
    return utility


def rank_candidates(candidates: list[Candidate]) -> list[Candidate]:
    """Highest utility first; ties keep enumeration order."""
    return sorted(candidates, key=lambda c: c.utility, reverse=True)


class ConstantGeneralizer:
    def __init__(
        self,
        ctx: InstContext,
        oracles: Oracles,
        options: GeneralizeOptions | None = None,
        stats: GeneralizationStatistics | None = None,
    ):
        self.ctx = ctx
        self.oracles = oracles
        self.options = options or GeneralizeOptions()
        self.stats = stats or GeneralizationStatistics()

    def generalize(self, rule: Rule) -> list[Rule]:
        lhs_consts = get_consts(rule.lhs)
        rhs_consts = get_consts(rule.rhs)
        if not lhs_consts or not rhs_consts:
            logger.info("Nothing to symbolize: the rule needs constants on both sides")
            return []

        results = []
        for const in lhs_consts:
            results.extend(self._symbolize(rule, [const], rhs_consts[0]))
        # Pairs and other partial subsets are not explored.
        results.extend(self._symbolize(rule, lhs_consts, rhs_consts[0]))
        logger.info("Found %d generalization(s)", len(results))
        return results

    def _symbolize(self, rule: Rule, targets: list[Inst], rhs_target: Inst) -> list[Rule]:
        symbols = {const: self.ctx.fresh_var(const.width, FAKE_CONST_PREFIX) for const in targets}
        fakes = list(symbols.values())
        lhs = replace(rule.lhs, self.ctx, symbols)

        self.stats.record(PASS_NAME, PassEvent.ORACLE_QUERY)
        guesses = self.oracles.enumerator.generate_exprs(
            self.ctx, fakes, self.options.symbolize_num_insts, rhs_target.width
        )
        logger.debug("Symbolizing %d constant(s); %d guess(es)", len(targets), len(guesses))

        results: list[Rule] = []
        constant_free: list[InstMapping] = []
        for guess in guesses:
            rhs = replace(rule.rhs, self.ctx, {**symbols, rhs_target: guess})
            mapping = InstMapping(lhs, rhs)
            holes = get_reserved_consts(guess)
            if not holes:
                constant_free.append(mapping)
                continue
            self.stats.record(PASS_NAME, PassEvent.ORACLE_QUERY)
            values = self.oracles.synthesizer.synthesize(
                rule,
                mapping,
                holes,
                max_attempts=self.options.synthesis_max_attempts,
                cex_budget=self.options.synthesis_cex_budget,
                avoid_trivial=self.options.synthesis_avoid_trivial,
            )
            if values is None:
                self.stats.record(PASS_NAME, PassEvent.CANDIDATE_DISCARDED)
                continue
            mapping = InstMapping(lhs, replace_consts(rhs, self.ctx, values))
            self.stats.record(PASS_NAME, PassEvent.CANDIDATE_ACCEPTED)
            results.append(rule.with_mapping(mapping))

        if self.options.symbolize_no_dataflow:
            # Without the precondition oracle nothing vouches for these.
            self.stats.record(PASS_NAME, PassEvent.CANDIDATE_DISCARDED, len(constant_free))
            return results

        candidates = []
        for mapping in constant_free:
            self.stats.record(PASS_NAME, PassEvent.ORACLE_QUERY)
            precondition = self.oracles.verifier.abstract_precondition(rule, mapping)
            if not precondition.found:
                self.stats.record(PASS_NAME, PassEvent.CANDIDATE_DISCARDED)
                continue
            candidates.append(
                Candidate(mapping, precondition, precondition_utility(precondition))
            )

        for candidate in rank_candidates(candidates):
            if not candidate.precondition.needs_nothing:
                # TODO: emit precondition-guarded candidates once the ranking is tuned.
                if logger.debug_on:
                    logger.debug(
                        "Skipping candidate needing a precondition (utility %d):\n%s",
                        candidate.utility,
                        render_mapping(candidate.mapping),
                    )
                self.stats.record(PASS_NAME, PassEvent.CANDIDATE_DISCARDED)
                continue
            self.stats.record(PASS_NAME, PassEvent.CANDIDATE_ACCEPTED)
            results.append(rule.with_mapping(candidate.mapping))
        return results


def symbolize_and_generalize(
    rule: Rule,
    ctx: InstContext,
    oracles: Oracles,
    options: GeneralizeOptions | None = None,
    stats: GeneralizationStatistics | None = None,
) -> list[Rule]:
    return ConstantGeneralizer(ctx, oracles, options, stats).generalize(rule)
