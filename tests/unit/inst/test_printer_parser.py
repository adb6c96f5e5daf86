"""Tests for the textual rule notation: rendering, canonical keys and parsing."""

import textwrap

import pytest

from rulegen.errors import ParseError
from rulegen.inst import (
    Builder,
    ConstantRange,
    InstMapping,
    KnownBits,
    Rule,
    VarFacts,
    canonical_text,
    parse_rule,
    parse_rules,
    render_inst,
    render_rule,
)

DISTRIBUTE = textwrap.dedent(
    """\
    %x:i8 = var
    %0:i8 = add %x, 4:i8
    %1:i8 = mul %0, 3:i8
    infer %1
    %2:i8 = mul %x, 3:i8
    %3:i8 = add %2, 12:i8
    result %3
    """
)


def build_distribute(ctx) -> Rule:
    x = Builder.var(ctx, "x", 8)
    return Rule(InstMapping(((x + 4) * 3)(), (x * 3 + 12)()))


class TestRender:
    def test_render_named(self, ctx):
        assert render_rule(build_distribute(ctx)) == DISTRIBUTE

    def test_canonical_numbers_variables_too(self, ctx):
        text = canonical_text(build_distribute(ctx))
        assert text.splitlines()[:2] == ["%0:i8 = var", "%1:i8 = add %0, 4:i8"]
        assert text.endswith("result %4\n")

    def test_canonical_ignores_variable_names(self, ctx):
        a = Builder.var(ctx, "a", 8)
        b = Builder.var(ctx, "newvar7", 8)
        rule_a = Rule(InstMapping((a + 1)(), (1 + a)()))
        rule_b = Rule(InstMapping((b + 1)(), (1 + b)()))
        assert render_rule(rule_a) != render_rule(rule_b)
        assert canonical_text(rule_a) == canonical_text(rule_b)

    def test_constants_print_signed(self, ctx):
        x = Builder.var(ctx, "x", 8)
        rule = Rule(InstMapping((x ^ 255)(), (~x)()))
        assert "xor %x, -1:i8" in render_rule(rule)

    def test_numbered_values_skip_variable_names(self, ctx):
        zero = Builder.var(ctx, "0", 8)
        rule = Rule(InstMapping((zero + 1)(), (zero + 1)()))
        lines = render_rule(rule).splitlines()
        assert lines[0] == "%0:i8 = var"
        assert lines[1] == "%1:i8 = add %0, 1:i8"

    def test_shared_nodes_are_defined_once(self, ctx):
        x = Builder.var(ctx, "x", 8)
        shared = x * 3
        rule = Rule(InstMapping((shared + 12)(), (shared + 12)()))
        text = render_rule(rule)
        assert text.count("= mul") == 1
        assert text.splitlines()[-2:] == ["infer %1", "result %1"]

    def test_facts_are_rendered_as_attributes(self, ctx):
        x = Builder.var(ctx, "x", 8)
        facts = VarFacts(non_zero=True).with_known_bits(KnownBits(8, zero=1))
        facts = facts.with_range(ConstantRange(8, 0, 16))
        rule = Rule(InstMapping((x & 1)(), ctx.get_const(0, 8)), facts={x(): facts})
        first = render_rule(rule).splitlines()[0]
        assert first == "%x:i8 = var (knownBits=xxxxxxx0) (nonZero) (range=[0,16))"

    def test_render_inst(self, ctx):
        x = Builder.var(ctx, "x", 8)
        assert render_inst((x - 1)()) == "%x:i8 = var\n%0:i8 = sub %x, 1:i8\ninfer %0\n"


class TestParse:
    def test_round_trip(self, ctx):
        rule = parse_rule(DISTRIBUTE, ctx)
        assert rule.lhs is build_distribute(ctx).lhs
        assert render_rule(rule) == DISTRIBUTE

    def test_constant_widths_are_inferred(self, ctx):
        rule = parse_rule(
            """
            %x:i16 = var
            %0:i16 = and %x, 255
            infer %0
            result %0
            """,
            ctx,
        )
        assert rule.lhs.ops[1] is ctx.get_const(255, 16)

    def test_comments_and_multiple_rules(self, ctx):
        rules = parse_rules(
            """
            ; first rule
            %x:i8 = var
            infer %x
            result %x  ; identity

            %x:i4 = var
            %0:i4 = sub %x, %x
            infer %0
            result 0
            """,
            ctx,
        )
        assert len(rules) == 2
        assert rules[1].lhs.width == 4
        assert rules[1].rhs is ctx.get_const(0, 4)

    def test_var_attributes(self, ctx):
        rule = parse_rule(
            """
            %x:i8 = var (knownBits=1xxxxxx0) (signBits=2) (powerOfTwo)
            %y:i8 = var (range=[-16,16)) (nonNegative)
            %0:i8 = add %x, %y
            infer %0
            result %0
            """,
            ctx,
        )
        x, y = rule.lhs.ops
        assert rule.facts_for(x).known_bits(8) == KnownBits(8, zero=1, one=0x80)
        assert rule.facts_for(x).num_sign_bits == 2
        assert rule.facts_for(x).power_of_two
        assert rule.facts_for(y).range == ConstantRange(8, 240, 16)
        assert rule.facts_for(y).non_negative

    def test_path_conditions(self, ctx):
        rule = parse_rule(
            """
            %x:i8 = var
            %c = ult %x, 16
            pc %c 1
            %b = block 2
            %d = eq %x, 0
            blockpc %b 1 %d 0
            %0:i8 = and %x, 240
            infer %0
            result 0
            """,
            ctx,
        )
        assert len(rule.pcs) == 1
        assert rule.pcs[0].expected is ctx.get_const(1, 1)
        (bpc,) = rule.block_pcs
        assert bpc.block.num_preds == 2
        assert bpc.pred_index == 1
        assert len(rule.guard_pcs()) == 2

        reparsed = parse_rule(render_rule(rule), ctx)
        assert render_rule(reparsed) == render_rule(rule)
        assert reparsed.pcs == rule.pcs

    def test_casts_need_explicit_width(self, ctx):
        rule = parse_rule(
            """
            %x:i8 = var
            %0:i16 = zext %x
            %1:i8 = trunc %0
            infer %1
            result %x
            """,
            ctx,
        )
        assert rule.lhs.ops[0].width == 16

    @pytest.mark.parametrize(
        "text, lineno, fragment",
        [
            ("%0:i8 = add %x, 1\ninfer %0\nresult %0\n", 1, "unknown value %x"),
            ("%x:i8 = var\nresult %x\n", 2, "'result' before 'infer'"),
            ("%x:i8 = var\ninfer %x\ninfer %x\n", 3, "duplicate 'infer'"),
            ("%x:i8 = var\ninfer %x\n", 2, "no 'result'"),
            ("%x:i8 = var\n%x:i8 = var\n", 2, "already defined"),
            ("%x:i8 = var (knownBits=101)\n", 1, "knownBits"),
            ("%x:i8 = var\n%0:i8 = frob %x, %x\n", 2, "unknown instruction"),
            ("%x:i8 = var\n%y:i4 = var\n%0:i8 = add %x, %y\n", 3, "expected i8"),
            ("%x:i8 = var\n%y:i4 = var\ninfer %x\nresult %y\n", 4, "expected i8"),
            ("%x = var\n", 1, "needs a width"),
            ("%x:i8 = var\n%0 = zext %x\n", 2, "explicit result width"),
            ("%b = block 1\n%x:i1 = var\nblockpc %b 1 %x 1\n", 3, "out of range"),
        ],
    )
    def test_errors_carry_line_numbers(self, ctx, text, lineno, fragment):
        with pytest.raises(ParseError) as excinfo:
            parse_rules(text, ctx)
        assert excinfo.value.lineno == lineno
        assert str(excinfo.value).startswith(f"line {lineno}: ")
        assert fragment in str(excinfo.value)

    def test_parse_rule_requires_exactly_one(self, ctx):
        with pytest.raises(ParseError):
            parse_rule("", ctx)
        with pytest.raises(ParseError):
            parse_rule(DISTRIBUTE + DISTRIBUTE, ctx)
