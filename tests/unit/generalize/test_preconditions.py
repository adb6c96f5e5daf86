from unittest.mock import MagicMock

import pytest

from rulegen.core import GeneralizationStatistics, PassEvent
from rulegen.generalize import generalize_preconditions
from rulegen.inst import ConstantRange, KnownBits, render_rule
from rulegen.oracles import NOT_FOUND, PreconditionResult

LOW_BIT = """
%x:i8 = var
%0:i8 = and %x, 1
infer %0
result 0
"""


def verifier_returning(result):
    verifier = MagicMock()
    verifier.abstract_precondition.return_value = result
    return verifier


class TestScripted:
    def test_valid_rule_is_returned_unchanged(self, rule_from):
        rule = rule_from(LOW_BIT)
        assert generalize_preconditions(rule, verifier_returning(PreconditionResult(True))) == [rule]

    def test_one_rule_per_known_bits_disjunct(self, rule_from):
        rule = rule_from(LOW_BIT)
        (x,) = rule.vars()
        result = PreconditionResult(
            True,
            known_bits=[{x: KnownBits(8, zero=1)}, {x: KnownBits(8, one=0x80)}],
            ranges=[{x: ConstantRange(8, 0, 2)}],
        )
        stats = GeneralizationStatistics()
        rules = generalize_preconditions(rule, verifier_returning(result), stats)

        # Known bits take precedence over ranges
        assert [r.facts_for(x).known_bits(8) for r in rules] == [
            KnownBits(8, zero=1),
            KnownBits(8, one=0x80),
        ]
        assert all(r.facts_for(x).range is None for r in rules)
        assert stats.get("fixit", PassEvent.CANDIDATE_ACCEPTED) == 2
        # The input rule is untouched
        assert rule.facts_for(x).is_empty

    def test_range_disjuncts(self, rule_from):
        rule = rule_from(LOW_BIT)
        (x,) = rule.vars()
        result = PreconditionResult(True, ranges=[{x: ConstantRange(8, 0, 16)}])
        (fixed,) = generalize_preconditions(rule, verifier_returning(result))
        assert fixed.facts_for(x).range == ConstantRange(8, 0, 16)
        assert "(range=[0,16))" in render_rule(fixed)

    def test_existing_known_bits_are_merged(self, rule_from):
        rule = rule_from(
            """
            %x:i8 = var (knownBits=1xxxxxxx)
            %0:i8 = and %x, 1
            infer %0
            result 0
            """
        )
        (x,) = rule.vars()
        result = PreconditionResult(True, known_bits=[{x: KnownBits(8, zero=1)}])
        (fixed,) = generalize_preconditions(rule, verifier_returning(result))
        assert fixed.facts_for(x).known_bits(8) == KnownBits(8, zero=1, one=0x80)

    def test_nothing_found(self, rule_from):
        rule = rule_from(LOW_BIT)
        stats = GeneralizationStatistics()
        assert generalize_preconditions(rule, verifier_returning(NOT_FOUND), stats) == []
        assert stats.get("fixit", PassEvent.CANDIDATE_DISCARDED) == 1


@pytest.mark.z3
class TestWithZ3:
    def test_low_bit(self, rule_from, z3_verifier):
        rule = rule_from(LOW_BIT)
        (fixed,) = generalize_preconditions(rule, z3_verifier)
        assert render_rule(fixed).splitlines()[0] == "%x:i8 = var (knownBits=xxxxxxx0)"
        assert z3_verifier.is_valid(fixed).valid

    def test_every_result_is_valid(self, rule_from, z3_verifier):
        rule = rule_from(
            """
            %x:i8 = var
            %y:i8 = var
            %0:i8 = and %x, %y
            %1:i8 = and %0, 4
            infer %1
            result 0
            """
        )
        results = generalize_preconditions(rule, z3_verifier)
        assert len(results) == 2
        for fixed in results:
            assert z3_verifier.is_valid(fixed).valid
