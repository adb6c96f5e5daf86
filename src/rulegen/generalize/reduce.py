"""Delta-debugging style rule minimizer.

Repeatedly replaces one interior instruction with a fresh variable and keeps
the result whenever the rule stays valid. Every valid reduction is recorded
and explored further; a memo of canonical renderings prevents revisiting a
rule reached along a different path.

Only the mapping roots, variables and constants are never replaced. A
replacement that would leave a variable unbound by the LHS is skipped, since
such a rule could never be applied.
"""

from __future__ import annotations

from rulegen.core import GeneralizationStatistics, PassEvent, getLogger
from rulegen.errors import InvalidRuleError
from rulegen.inst import (
    NEW_VAR_PREFIX,
    Inst,
    InstContext,
    Rule,
    canonical_text,
    collect_rule_insts,
    render_rule,
    replace_in_rule,
)
from rulegen.oracles import VerificationOracle

logger = getLogger("rulegen.reduce")

PASS_NAME = "reduce"


class RuleMinimizer:
    def __init__(
        self,
        ctx: InstContext,
        verifier: VerificationOracle,
        stats: GeneralizationStatistics | None = None,
    ):
        self.ctx = ctx
        self.verifier = verifier
        self.stats = stats or GeneralizationStatistics()

    def minimize(self, rule: Rule, print_all: bool = False) -> list[Rule]:
        """Return the shortest valid reduction, or every one with *print_all*.

        Results are ordered by the length of their canonical rendering.

        Raises:
            InvalidRuleError: If *rule* itself is not valid.
        """
        self.stats.record(PASS_NAME, PassEvent.ORACLE_QUERY)
        if not self.verifier.is_valid(rule).valid:
            self.stats.record(PASS_NAME, PassEvent.PASS_ABORTED)
            raise InvalidRuleError("Invalid Input.")

        found: list[Rule] = []
        self._explore(rule, set(rule.vars()), found)

        unique: dict[str, Rule] = {}
        for reduced in found:
            unique.setdefault(canonical_text(reduced), reduced)
        ordered = [unique[text] for text in sorted(unique, key=lambda t: (len(t), t))]
        logger.info("%d distinct reduction(s)", len(ordered))
        results = ordered if print_all else ordered[:1]
        self.stats.record(PASS_NAME, PassEvent.CANDIDATE_ACCEPTED, len(results))
        return results

    def _explore(self, root: Rule, inputs: set[Inst], found: list[Rule]) -> None:
        memo: set[str] = set()
        worklist = [root]
        while worklist:
            rule = worklist.pop()
            key = canonical_text(rule)
            if key in memo:
                continue
            memo.add(key)

            insts = collect_rule_insts(rule)
            if len(insts) <= 1:
                continue
            accepted = []
            for node in insts:
                if node is rule.lhs or node is rule.rhs or node.is_leaf:
                    continue
                replacement = self.ctx.fresh_var(node.width, NEW_VAR_PREFIX)
                candidate = replace_in_rule(rule, self.ctx, {node: replacement})
                if candidate.dangling_vars(inputs):
                    logger.debug("Skipping %r: it would leave a variable unbound", node)
                    continue
                self.stats.record(PASS_NAME, PassEvent.ORACLE_QUERY)
                if self.verifier.is_valid(candidate).valid:
                    found.append(candidate)
                    accepted.append(candidate)
                else:
                    self.stats.record(PASS_NAME, PassEvent.CANDIDATE_DISCARDED)
                    if logger.debug_on:
                        logger.debug("Invalid attempt:\n%s", render_rule(candidate))
            # Explore in discovery order.
            worklist.extend(reversed(accepted))


def reduce_rule(
    rule: Rule,
    ctx: InstContext,
    verifier: VerificationOracle,
    print_all: bool = False,
    stats: GeneralizationStatistics | None = None,
) -> list[Rule]:
    return RuleMinimizer(ctx, verifier, stats).minimize(rule, print_all)
