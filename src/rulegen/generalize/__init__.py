"""
rulegen.generalize: the rule generalization passes.

Modules:
    constants     - symbolize literal constants (ConstantGeneralizer)
    preconditions - weakest known-bits / range preconditions
    reduce        - delta-debugging minimizer (RuleMinimizer)
    width         - width resweep for single-variable rules
"""

from .constants import (
    Candidate,
    ConstantGeneralizer,
    precondition_utility,
    rank_candidates,
    symbolize_and_generalize,
)
from .preconditions import generalize_preconditions
from .reduce import RuleMinimizer, reduce_rule
from .width import WidthVariant, generalize_width, infer_width, rebuild_with_width
