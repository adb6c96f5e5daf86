"""Parser for the textual rule notation produced by :mod:`rulegen.inst.printer`.

A file holds any number of rules; each one ends at its ``result`` line.
Value names are scoped to a single rule. ``;`` starts a comment.
"""

from __future__ import annotations

import dataclasses
import re
import typing

from rulegen.core.bits import parse_known_bits
from rulegen.core.logging import getLogger
from rulegen.errors import ParseError
from rulegen.inst.facts import ConstantRange, VarFacts
from rulegen.inst.inst import Inst, InstContext
from rulegen.inst.kinds import InstKind
from rulegen.inst.rule import (
    Block,
    BlockPathCondition,
    InstMapping,
    PathCondition,
    Rule,
)

logger = getLogger(__name__)

_DEF_RE = re.compile(
    r"^%(?P<name>[\w.]+)(?::i(?P<width>\d+))?\s*=\s*(?P<op>\w+)\s*(?P<rest>.*)$"
)
_CONST_RE = re.compile(r"^(?P<value>-?\d+)(?::i(?P<width>\d+))?$")
_ATTR_RE = re.compile(
    r"\s*\((?:"
    r"knownBits=(?P<known>[01x]+)"
    r"|signBits=(?P<sign>\d+)"
    r"|range=\[(?P<lower>-?\d+),(?P<upper>-?\d+)\)"
    r"|(?P<flag>nonNegative|negative|nonZero|powerOfTwo)"
    r")\)"
)


class RuleParser:
    def __init__(self, ctx: InstContext):
        self.ctx = ctx
        self.lineno = 0
        self._reset()

    def _reset(self) -> None:
        self._values: dict[str, Inst] = {}
        self._blocks: dict[str, Block] = {}
        self._facts: dict[Inst, VarFacts] = {}
        self._pcs: list[PathCondition] = []
        self._block_pcs: list[BlockPathCondition] = []
        self._lhs: Inst | None = None
        self._pending = False

    def error(self, message: str) -> ParseError:
        return ParseError(message, self.lineno)

    def parse(self, text: str) -> list[Rule]:
        rules = []
        for self.lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.split(";", 1)[0].strip()
            if not line:
                continue
            self._pending = True
            rule = self._parse_line(line)
            if rule is not None:
                rules.append(rule)
                self._reset()
        if self._pending:
            raise self.error("unexpected end of input: rule has no 'result'")
        logger.debug("Parsed %d rule(s)", len(rules))
        return rules

    def _parse_line(self, line: str) -> Rule | None:
        keyword, _, rest = line.partition(" ")
        rest = rest.strip()
        if keyword == "infer":
            if self._lhs is not None:
                raise self.error("duplicate 'infer'")
            self._lhs = self._operand(rest, None)
            return None
        if keyword == "result":
            if self._lhs is None:
                raise self.error("'result' before 'infer'")
            rhs = self._operand(rest, self._lhs.width)
            try:
                mapping = InstMapping(self._lhs, rhs)
            except ValueError as e:
                raise self.error(str(e)) from e
            return Rule(mapping, tuple(self._pcs), tuple(self._block_pcs), self._facts)
        if keyword == "pc":
            self._pcs.append(self._path_condition(rest.split()))
            return None
        if keyword == "blockpc":
            tokens = rest.split()
            if len(tokens) != 4:
                raise self.error("blockpc expects a block, an index and two operands")
            block = self._blocks.get(tokens[0].lstrip("%"))
            if block is None:
                raise self.error(f"unknown block {tokens[0]}")
            try:
                index = int(tokens[1])
            except ValueError as e:
                raise self.error(f"invalid predecessor index {tokens[1]!r}") from e
            if not 0 <= index < block.num_preds:
                raise self.error(f"predecessor index {index} out of range")
            pc = self._path_condition(tokens[2:])
            self._block_pcs.append(BlockPathCondition(block, index, pc))
            return None
        self._definition(line)
        return None

    def _path_condition(self, tokens: list[str]) -> PathCondition:
        if len(tokens) != 2:
            raise self.error("pc expects two operands")
        hint = self._hint(tokens)
        return PathCondition(self._operand(tokens[0], hint), self._operand(tokens[1], hint))

    def _hint(self, tokens: typing.Iterable[str]) -> int | None:
        """Width of the first operand whose width is known without context."""
        for token in tokens:
            if token.startswith("%"):
                value = self._values.get(token[1:])
                if value is not None:
                    return value.width
            else:
                match = _CONST_RE.match(token)
                if match and match.group("width"):
                    return int(match.group("width"))
        return None

    def _operand(self, token: str, width: int | None) -> Inst:
        token = token.strip()
        if token.startswith("%"):
            value = self._values.get(token[1:])
            if value is None:
                raise self.error(f"unknown value {token}")
            if width is not None and value.width != width:
                raise self.error(f"{token} is i{value.width}, expected i{width}")
            return value
        match = _CONST_RE.match(token)
        if match is None:
            raise self.error(f"invalid operand {token!r}")
        if match.group("width"):
            const_width = int(match.group("width"))
            if width is not None and const_width != width:
                raise self.error(f"{token} is i{const_width}, expected i{width}")
            width = const_width
        if width is None:
            raise self.error(f"cannot infer the width of constant {token}")
        return self.ctx.get_const(int(match.group("value")), width)

    def _definition(self, line: str) -> None:
        match = _DEF_RE.match(line)
        if match is None:
            raise self.error(f"cannot parse {line!r}")
        name, op, rest = match.group("name", "op", "rest")
        width = int(match.group("width")) if match.group("width") else None
        if name in self._values or name in self._blocks:
            raise self.error(f"%{name} is already defined")
        if width == 0:
            raise self.error("zero-width value")

        if op == "block":
            try:
                self._blocks[name] = Block(name, int(rest))
            except ValueError as e:
                raise self.error(f"invalid predecessor count {rest!r}") from e
            return
        if op == "var":
            if width is None:
                raise self.error(f"variable %{name} needs a width")
            var = self.ctx.create_var(width, name)
            facts = self._var_facts(rest, width)
            if not facts.is_empty:
                self._facts[var] = facts
            self._values[name] = var
            return

        try:
            kind = InstKind.from_name(op)
        except KeyError as e:
            raise self.error(f"unknown instruction {op!r}") from e
        tokens = [t.strip() for t in rest.split(",")] if rest else []
        if len(tokens) != kind.arity:
            raise self.error(f"{op} expects {kind.arity} operands, got {len(tokens)}")
        ops = self._operands(kind, width, tokens)
        if width is None:
            width = 1 if kind.is_comparison else ops[-1].width
        try:
            self._values[name] = self.ctx.get_inst(kind, width, ops)
        except ValueError as e:
            raise self.error(str(e)) from e

    def _operands(self, kind: InstKind, width: int | None, tokens: list[str]) -> list[Inst]:
        if kind.is_binary:
            hint = width if width is not None else self._hint(tokens)
            return [self._operand(t, hint) for t in tokens]
        if kind.is_comparison:
            hint = self._hint(tokens)
            return [self._operand(t, hint) for t in tokens]
        if kind is InstKind.SELECT:
            hint = width if width is not None else self._hint(tokens[1:])
            return [self._operand(tokens[0], 1)] + [self._operand(t, hint) for t in tokens[1:]]
        if width is None:
            raise self.error(f"{kind.value} needs an explicit result width")
        return [self._operand(tokens[0], None)]

    def _var_facts(self, text: str, width: int) -> VarFacts:
        facts = VarFacts()
        pos = 0
        while pos < len(text):
            match = _ATTR_RE.match(text, pos)
            if match is None:
                if text[pos:].strip():
                    raise self.error(f"invalid variable attribute {text[pos:].strip()!r}")
                break
            pos = match.end()
            try:
                facts = self._apply_attr(facts, match, width)
            except ValueError as e:
                raise self.error(str(e)) from e
        return facts

    @staticmethod
    def _apply_attr(facts: VarFacts, match: re.Match, width: int) -> VarFacts:
        if match.group("known"):
            bits = match.group("known")
            if len(bits) != width:
                raise ValueError(f"knownBits string has {len(bits)} bits, expected {width}")
            zero, one = parse_known_bits(bits)
            return dataclasses.replace(facts, known_zero=zero, known_one=one)
        if match.group("sign"):
            sign_bits = int(match.group("sign"))
            if not 1 <= sign_bits <= width:
                raise ValueError(f"signBits={sign_bits} out of range for i{width}")
            return dataclasses.replace(facts, num_sign_bits=sign_bits)
        if match.group("lower") is not None:
            limit = 1 << width
            lower = int(match.group("lower")) % limit
            upper = int(match.group("upper")) % limit
            return facts.with_range(ConstantRange(width, lower, upper))
        flag = {
            "nonNegative": "non_negative",
            "negative": "negative",
            "nonZero": "non_zero",
            "powerOfTwo": "power_of_two",
        }[match.group("flag")]
        return dataclasses.replace(facts, **{flag: True})


def parse_rules(text: str, ctx: InstContext) -> list[Rule]:
    return RuleParser(ctx).parse(text)


def parse_rule(text: str, ctx: InstContext) -> Rule:
    """Parse text holding exactly one rule."""
    rules = parse_rules(text, ctx)
    if len(rules) != 1:
        raise ParseError(f"expected exactly one rule, found {len(rules)}")
    return rules[0]
