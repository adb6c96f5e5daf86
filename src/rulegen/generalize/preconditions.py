"""Precondition generalization.

Asks the verification oracle for the weakest facts under which a rule holds
and emits one rule per sufficient disjunct. Known-bits disjuncts win over
range disjuncts; a rule that needs nothing comes back unchanged.
"""

from __future__ import annotations

from rulegen.core import GeneralizationStatistics, PassEvent, getLogger
from rulegen.inst import Rule
from rulegen.oracles import VerificationOracle

logger = getLogger("rulegen.fixit")

PASS_NAME = "fixit"


def generalize_preconditions(
    rule: Rule,
    verifier: VerificationOracle,
    stats: GeneralizationStatistics | None = None,
) -> list[Rule]:
    stats = stats or GeneralizationStatistics()
    stats.record(PASS_NAME, PassEvent.ORACLE_QUERY)
    result = verifier.abstract_precondition(rule)

    if result.needs_nothing:
        logger.info("Rule is valid without a precondition")
        stats.record(PASS_NAME, PassEvent.CANDIDATE_ACCEPTED)
        return [rule]
    if result.known_bits:
        results = [rule.with_known_bits(disjunct) for disjunct in result.known_bits]
    elif result.ranges:
        results = [rule.with_ranges(disjunct) for disjunct in result.ranges]
    else:
        logger.info("No precondition makes this rule valid")
        stats.record(PASS_NAME, PassEvent.CANDIDATE_DISCARDED)
        return []
    logger.info("Found %d precondition(s)", len(results))
    stats.record(PASS_NAME, PassEvent.CANDIDATE_ACCEPTED, len(results))
    return results
