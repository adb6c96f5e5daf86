from unittest.mock import MagicMock

import pytest

from rulegen.core import GeneralizationStatistics, PassEvent
from rulegen.errors import InvalidRuleError
from rulegen.generalize import RuleMinimizer, reduce_rule
from rulegen.inst import (
    InstContext,
    canonical_text,
    collect_rule_insts,
    parse_rule,
    render_rule,
)
from rulegen.oracles import ValidityResult

IDENTITY_MASK = """
%x:i8 = var
%0:i8 = and %x, -1
%1:i8 = xor %0, 0
infer %1
%2:i8 = or %0, 0
result %2
"""

CANCEL = """
%x:i8 = var
%y:i8 = var
%z:i8 = var
%0:i8 = mul %x, %y
%1:i8 = add %0, %z
%2:i8 = sub %1, %z
infer %2
%3:i8 = add %0, 0
result %3
"""

TWO_MASKS = """
%x:i8 = var
%y:i8 = var
%0:i8 = and %x, 1
%1:i8 = and %y, 2
%2:i8 = add %0, %1
infer %2
result %2
"""


def always(valid: bool) -> MagicMock:
    verifier = MagicMock()
    verifier.is_valid.return_value = ValidityResult(valid)
    return verifier


def interior_count(rule) -> int:
    return sum(1 for node in collect_rule_insts(rule) if not node.is_leaf)


class TestScripted:
    def test_invalid_input_raises(self, ctx, rule_from):
        rule = rule_from(IDENTITY_MASK)
        stats = GeneralizationStatistics()
        with pytest.raises(InvalidRuleError, match="Invalid Input."):
            RuleMinimizer(ctx, always(False), stats).minimize(rule)
        assert stats.get("reduce", PassEvent.PASS_ABORTED) == 1

    def test_single_value_rule_has_nothing_to_reduce(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            infer %x
            result %x
            """
        )
        verifier = always(True)
        assert reduce_rule(rule, ctx, verifier) == []
        assert verifier.is_valid.call_count == 1

    def test_dangling_replacements_are_not_queried(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %0:i8 = add %x, 4
            %1:i8 = mul %0, 3
            infer %1
            %2:i8 = mul %x, 3
            %3:i8 = add %2, 12
            result %3
            """
        )
        verifier = always(True)
        (reduced,) = reduce_rule(rule, ctx, verifier, print_all=True)
        # Only the LHS operand can be abstracted; the RHS-only product would
        # leave its fresh variable unbound.
        assert verifier.is_valid.call_count == 2
        assert render_rule(reduced).splitlines()[:2] == [
            "%newvar0:i8 = var",
            "%0:i8 = mul %newvar0, 3:i8",
        ]

    def test_memo_prevents_revisiting(self, ctx, rule_from):
        rule = rule_from(TWO_MASKS)
        verifier = always(True)
        results = reduce_rule(rule, ctx, verifier, print_all=True)
        # input + two at the first level + one below each of those; the
        # second route to the fully reduced rule is cut by the memo
        assert verifier.is_valid.call_count == 5
        assert len(results) == 3
        assert canonical_text(results[0]) == (
            "%0:i8 = var\n%1:i8 = var\n%2:i8 = add %0, %1\ninfer %2\nresult %2\n"
        )

    def test_results_are_sorted_and_deduplicated(self, ctx, rule_from):
        rule = rule_from(TWO_MASKS)
        results = reduce_rule(rule, ctx, always(True), print_all=True)
        texts = [canonical_text(r) for r in results]
        assert len(set(texts)) == len(texts)
        assert texts == sorted(texts, key=lambda t: (len(t), t))
        (shortest,) = reduce_rule(rule, ctx, always(True))
        assert canonical_text(shortest) == texts[0]

    def test_stats(self, ctx, rule_from):
        rule = rule_from(TWO_MASKS)
        stats = GeneralizationStatistics()
        reduce_rule(rule, ctx, always(True), print_all=True, stats=stats)
        assert stats.get("reduce", PassEvent.ORACLE_QUERY) == 5
        assert stats.get("reduce", PassEvent.CANDIDATE_ACCEPTED) == 3


@pytest.mark.z3
class TestWithZ3:
    def test_identity_mask(self, ctx, rule_from, z3_verifier):
        rule = rule_from(IDENTITY_MASK)
        (reduced,) = reduce_rule(rule, ctx, z3_verifier)
        assert canonical_text(reduced) == (
            "%0:i8 = var\n"
            "%1:i8 = xor %0, 0:i8\n"
            "infer %1\n"
            "%2:i8 = or %0, 0:i8\n"
            "result %2\n"
        )

    def test_already_minimal(self, ctx, rule_from, z3_verifier):
        rule = rule_from(
            """
            %x:i8 = var
            %0:i8 = and %x, -1
            infer %0
            result %x
            """
        )
        assert reduce_rule(rule, ctx, z3_verifier) == []

    def test_cancel_drops_the_product(self, ctx, rule_from, z3_verifier):
        rule = rule_from(CANCEL)
        results = reduce_rule(rule, ctx, z3_verifier, print_all=True)
        assert len(results) == 1
        (reduced,) = results
        assert [v.name for v in reduced.vars()] == ["z", "newvar1"]
        assert z3_verifier.is_valid(reduced).valid
        assert "mul" not in render_rule(reduced)

    def test_every_result_is_valid_and_smaller(self, ctx, rule_from, z3_verifier):
        rule = rule_from(CANCEL)
        for reduced in reduce_rule(rule, ctx, z3_verifier, print_all=True):
            assert z3_verifier.is_valid(reduced).valid
            assert interior_count(reduced) < interior_count(rule)

    def test_output_is_deterministic(self, z3_verifier):
        def run():
            ctx = InstContext()
            rule = parse_rule(TWO_MASKS, ctx)
            return [canonical_text(r) for r in reduce_rule(rule, ctx, z3_verifier, print_all=True)]

        assert run() == run()
