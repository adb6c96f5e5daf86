"""Exception hierarchy for rulegen.

Oracle failures (no answer, no constants, no precondition) are *not*
exceptions: the oracles return negative results and the passes discard the
candidate. The classes below are reserved for the three situations that do
stop work: unreadable input, requests outside the supported scope, and a pass
handed a rule it cannot start from.
"""


class RulegenException(Exception):
    """Base class for all rulegen errors."""


class ParseError(RulegenException):
    """The rule text could not be read."""

    def __init__(self, message: str, lineno: int | None = None):
        self.lineno = lineno
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)


class UnsupportedOperationError(RulegenException):
    """A request falls outside what a pass supports (e.g. multi-variable width resweep)."""


class InvalidRuleError(RulegenException):
    """A pass that requires a valid input rule received an invalid one."""


class OracleError(RulegenException):
    """A backend could not answer a query (solver unknown, conversion failure)."""


class Z3Exception(RulegenException):
    """z3 is required but not installed."""
