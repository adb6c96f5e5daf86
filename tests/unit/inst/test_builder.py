import pytest

from rulegen.inst import Builder, InstKind


@pytest.fixture
def x(ctx):
    return Builder.var(ctx, "x", 8)


def test_int_operands_take_the_other_width(ctx, x):
    node = (x + 4)()
    assert node.kind is InstKind.ADD
    assert node.ops[1] is ctx.get_const(4, 8)


def test_reflected_operators_keep_operand_order(ctx, x):
    node = (4 - x)()
    assert node.kind is InstKind.SUB
    assert node.ops == (ctx.get_const(4, 8), x())


def test_builders_intern(ctx, x):
    assert ((x + 4) * 3)() is ((x + 4) * 3)()


def test_negation_and_inversion(ctx, x):
    assert (-x)() is ctx.get_inst(InstKind.SUB, 8, (ctx.get_const(0, 8), x()))
    assert (~x)() is (x ^ -1)()


@pytest.mark.parametrize(
    "build, kind",
    [
        (lambda a, b: a & b, InstKind.AND),
        (lambda a, b: a | b, InstKind.OR),
        (lambda a, b: a << b, InstKind.SHL),
        (lambda a, b: a >> b, InstKind.LSHR),
        (lambda a, b: a.ashr(b), InstKind.ASHR),
        (lambda a, b: a.udiv(b), InstKind.UDIV),
        (lambda a, b: a.srem(b), InstKind.SREM),
    ],
)
def test_binary_operators(ctx, x, build, kind):
    y = Builder.var(ctx, "y", 8)
    node = build(x, y)()
    assert node.kind is kind
    assert node.width == 8


def test_comparisons_are_i1(ctx, x):
    node = x.sle(3)()
    assert node.kind is InstKind.SLE
    assert node.width == 1


def test_casts(ctx, x):
    assert x.zext(32).width == 32
    assert x.sext(16)().kind is InstKind.SEXT
    assert x.trunc(1).width == 1


def test_select(ctx, x):
    cond = x.eq(0)
    node = cond.select(x, 1)()
    assert node.kind is InstKind.SELECT
    assert node.ops[2] is ctx.get_const(1, 8)


def test_rejects_foreign_operands(ctx, x):
    with pytest.raises(TypeError):
        x + "1"
