"""Hash-consed instruction nodes.

Nodes are created only through an :class:`InstContext`, which interns them by
``(kind, width, operands, name/value)``. Two requests with the same key return
the same object, so structural equality is identity equality and nodes may be
used directly as dictionary keys.

Each node also carries a small integer ``handle``: its position in the
context's arena. Handles give a stable creation order that deterministic
traversals and canonical renderings rely on.
"""

from __future__ import annotations

import dataclasses
import itertools
import typing
from collections import defaultdict

from rulegen.core.bits import mask
from rulegen.inst.kinds import InstKind


RESERVED_CONST_PREFIX = "reservedconst_"
FAKE_CONST_PREFIX = "fakeconst_"
NEW_VAR_PREFIX = "newvar"


@dataclasses.dataclass(frozen=True, eq=False, slots=True)
class Inst:
    """One node of an instruction DAG. Immutable; compare with ``is``."""

    handle: int
    kind: InstKind
    width: int
    ops: tuple["Inst", ...] = ()
    name: str | None = None
    value: int | None = None

    @property
    def is_var(self) -> bool:
        return self.kind is InstKind.VAR

    @property
    def is_const(self) -> bool:
        return self.kind is InstKind.CONST

    @property
    def is_leaf(self) -> bool:
        return self.kind.is_leaf

    @property
    def is_reserved_const(self) -> bool:
        """A synthesis hole: a variable standing for a constant to be found."""
        return self.is_var and self.name is not None and self.name.startswith(
            RESERVED_CONST_PREFIX
        )

    def __repr__(self) -> str:
        if self.is_var:
            return f"Inst(var %{self.name}:i{self.width})"
        if self.is_const:
            return f"Inst(const {self.value}:i{self.width})"
        args = ", ".join(f"#{op.handle}" for op in self.ops)
        return f"Inst(#{self.handle} {self.kind.value}:i{self.width} {args})"


class InstContext:
    """Arena that owns every node of a run together with the fresh-name counters.

    >>> ctx = InstContext()
    >>> x = ctx.create_var(8, "x")
    >>> ctx.get_inst(InstKind.ADD, 8, (x, ctx.get_const(1, 8))) is \\
    ...     ctx.get_inst(InstKind.ADD, 8, (x, ctx.get_const(1, 8)))
    True
    """

    def __init__(self):
        self._arena: list[Inst] = []
        self._interned: dict[tuple, Inst] = {}
        self._counters: dict[str, typing.Iterator[int]] = defaultdict(itertools.count)

    def __len__(self) -> int:
        return len(self._arena)

    def __getitem__(self, handle: int) -> Inst:
        return self._arena[handle]

    def __iter__(self) -> typing.Iterator[Inst]:
        return iter(self._arena)

    def _intern(self, key: tuple, factory: typing.Callable[[int], Inst]) -> Inst:
        inst = self._interned.get(key)
        if inst is None:
            inst = factory(len(self._arena))
            self._arena.append(inst)
            self._interned[key] = inst
        return inst

    def get_const(self, value: int, width: int) -> Inst:
        """Return the constant *value* of *width* bits; negative values wrap."""
        value &= mask(width)
        return self._intern(
            (InstKind.CONST, width, value),
            lambda handle: Inst(handle, InstKind.CONST, width, value=value),
        )

    def create_var(self, width: int, name: str) -> Inst:
        mask(width)
        return self._intern(
            (InstKind.VAR, width, name),
            lambda handle: Inst(handle, InstKind.VAR, width, name=name),
        )

    def fresh_name(self, prefix: str) -> str:
        """Next unused name for *prefix* (``newvar0``, ``newvar1``, ...)."""
        return f"{prefix}{next(self._counters[prefix])}"

    def fresh_var(self, width: int, prefix: str) -> Inst:
        return self.create_var(width, self.fresh_name(prefix))

    def get_inst(self, kind: InstKind, width: int, ops: typing.Sequence[Inst]) -> Inst:
        """Intern an operator node, checking arity and operand widths."""
        ops = tuple(ops)
        self._check(kind, width, ops)
        return self._intern(
            (kind, width, tuple(op.handle for op in ops)),
            lambda handle: Inst(handle, kind, width, ops),
        )

    @staticmethod
    def _check(kind: InstKind, width: int, ops: tuple[Inst, ...]) -> None:
        if kind.is_leaf:
            raise ValueError(f"{kind.value} nodes are created with get_const/create_var")
        if len(ops) != kind.arity:
            raise ValueError(
                f"{kind.value} expects {kind.arity} operands, got {len(ops)}"
            )
        mask(width)
        if kind.is_binary:
            if any(op.width != width for op in ops):
                raise ValueError(f"{kind.value}:i{width} operand width mismatch")
        elif kind.is_comparison:
            if width != 1:
                raise ValueError(f"{kind.value} produces i1, not i{width}")
            if ops[0].width != ops[1].width:
                raise ValueError(f"{kind.value} operand width mismatch")
        elif kind is InstKind.SELECT:
            cond, true_val, false_val = ops
            if cond.width != 1:
                raise ValueError("select condition must be i1")
            if true_val.width != width or false_val.width != width:
                raise ValueError(f"select:i{width} operand width mismatch")
        elif kind is InstKind.TRUNC:
            if ops[0].width <= width:
                raise ValueError(f"trunc from i{ops[0].width} to i{width} does not narrow")
        elif ops[0].width >= width:
            raise ValueError(
                f"{kind.value} from i{ops[0].width} to i{width} does not widen"
            )
