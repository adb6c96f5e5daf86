import pytest

from rulegen.errors import UnsupportedOperationError
from rulegen.generalize import generalize_width, infer_width, rebuild_with_width
from rulegen.inst import Builder, InstKind, get_vars, render_mapping


class TestGeneralizeWidth:
    def test_widths_1_to_63(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %0:i8 = xor %x, %x
            %1:i8 = or %0, %x
            infer %1
            result %x
            """
        )
        variants = generalize_width(rule, ctx)
        assert [v.width for v in variants] == list(range(1, 64))
        for variant in variants:
            assert variant.mapping.lhs.width == variant.width
            assert variant.mapping.rhs.width == variant.width
            (var,) = get_vars(variant.mapping.lhs)
            assert var.name == "x"

    def test_rendering(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %0:i8 = sub %x, %x
            infer %0
            %1:i8 = xor %x, %x
            result %1
            """
        )
        variant = generalize_width(rule, ctx)[15]
        assert variant.width == 16
        assert render_mapping(variant.mapping) == (
            "%x:i16 = var\n"
            "%0:i16 = sub %x, %x\n"
            "infer %0\n"
            "%1:i16 = xor %x, %x\n"
            "result %1\n"
        )

    def test_comparisons_stay_i1(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %0 = eq %x, %x
            %1 = ne %x, %x
            %2 = ult %x, %x
            %3 = or %0, %2
            infer %3
            %4 = sle %x, %x
            %5 = xor %4, %1
            result %5
            """
        )
        for variant in generalize_width(rule, ctx):
            assert variant.mapping.lhs.width == 1
            assert variant.mapping.lhs.ops[0].ops[0].width == variant.width

    def test_multiple_variables(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %y:i8 = var
            %0:i8 = add %x, %y
            infer %0
            %1:i8 = add %y, %x
            result %1
            """
        )
        with pytest.raises(UnsupportedOperationError, match="Multiple variables unimplemented."):
            generalize_width(rule, ctx)

    def test_no_variables(self, ctx, rule_from):
        rule = rule_from(
            """
            %0:i8 = add 1:i8, 2
            infer %0
            result 3
            """
        )
        with pytest.raises(UnsupportedOperationError):
            generalize_width(rule, ctx)

    def test_constants_are_unsupported(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %0:i8 = add %x, 0
            infer %0
            result %x
            """
        )
        with pytest.raises(UnsupportedOperationError):
            generalize_width(rule, ctx)

    @pytest.mark.parametrize("op", ["shl", "udiv", "srem", "ashr"])
    def test_other_operators_are_unsupported(self, ctx, rule_from, op):
        rule = rule_from(
            f"""
            %x:i8 = var
            %0:i8 = {op} %x, %x
            infer %0
            result %0
            """
        )
        with pytest.raises(UnsupportedOperationError):
            generalize_width(rule, ctx)

    def test_rhs_only_variable_is_rejected(self, ctx, rule_from):
        rule = rule_from(
            """
            %x:i8 = var
            %y:i8 = var
            %0:i8 = and %x, %x
            infer %0
            %1:i8 = and %y, %x
            result %1
            """
        )
        with pytest.raises(UnsupportedOperationError):
            generalize_width(rule, ctx)


def test_infer_width(ctx):
    x = Builder.var(ctx, "x", 8)
    narrow = ctx.create_var(3, "x")
    assert infer_width((x + x)(), [narrow, narrow]) == 3
    assert infer_width(x.ult(x)(), [narrow, narrow]) == 1
    with pytest.raises(UnsupportedOperationError):
        infer_width(x.zext(16)(), [narrow])


def test_rebuild_shares_with_context(ctx):
    x = Builder.var(ctx, "x", 8)
    root = ((x & x) | x)()
    y = ctx.create_var(4, "x")
    rebuilt = rebuild_with_width(root, ctx, {x(): y})
    assert rebuilt is ctx.get_inst(
        InstKind.OR, 4, (ctx.get_inst(InstKind.AND, 4, (y, y)), y)
    )
