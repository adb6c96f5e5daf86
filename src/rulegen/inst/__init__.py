"""
rulegen.inst: the hash-consed instruction DAG and the rules built from it.

Modules:
    kinds     - InstKind, the closed operator set
    inst      - Inst nodes and the InstContext interning arena
    facts     - KnownBits, ConstantRange, VarFacts
    rule      - InstMapping, PathCondition, BlockPathCondition, Rule
    traversal - worklist walks, substitution and concrete evaluation
    builder   - operator-overloading Builder
    printer   - render_rule / canonical_text
    parser    - parse_rules
"""

from .kinds import InstKind
from .inst import (
    Inst,
    InstContext,
    FAKE_CONST_PREFIX,
    NEW_VAR_PREFIX,
    RESERVED_CONST_PREFIX,
)
from .facts import ConstantRange, KnownBits, NO_FACTS, VarFacts
from .rule import (
    Block,
    BlockPathCondition,
    InstMapping,
    ParsedReplacement,
    PathCondition,
    Rule,
)
from .traversal import (
    collect_insts,
    collect_rule_insts,
    count_insts,
    evaluate,
    find_insts,
    get_consts,
    get_reserved_consts,
    get_vars,
    replace,
    replace_consts,
    replace_in_rule,
)
from .builder import Builder
from .printer import canonical_text, render_inst, render_mapping, render_rule
from .parser import RuleParser, parse_rule, parse_rules
