"""Command-line driver: read rules, run the selected passes, print the results."""

from __future__ import annotations

import argparse
import pathlib
import sys
import typing

from rulegen.core import (
    GeneralizationStatistics,
    GeneralizeOptions,
    GeneralizerConfiguration,
    LoggerConfigurator,
    PassEvent,
    RulegenLogger,
    configure_loggers,
    getLogger,
)
from rulegen.errors import (
    InvalidRuleError,
    ParseError,
    UnsupportedOperationError,
    Z3Exception,
)
from rulegen.generalize import (
    generalize_preconditions,
    generalize_width,
    reduce_rule,
    symbolize_and_generalize,
)
from rulegen.inst import InstContext, Rule, parse_rules, render_mapping, render_rule
from rulegen.oracles import Oracles, get_default_oracles

logger = getLogger("rulegen")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rulegen",
        description="Generalize verified peephole rewrite rules.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Symbolize the constants of every rule in a file
  rulegen rules.opt --symbolize

  # Find the weakest known-bits precondition, then minimize
  rulegen rules.opt --fixit --reduce --reduce-all-results

  # Read from stdin and resweep widths
  cat rule.opt | rulegen --generalize-width
        """,
    )
    parser.add_argument(
        "input",
        nargs="?",
        default="-",
        help="Rule file to read (default: stdin)",
    )
    parser.add_argument(
        "--symbolize",
        action="store_true",
        help="Replace literal constants with symbolic ones",
    )
    parser.add_argument(
        "--symbolize-num-insts",
        type=int,
        default=None,
        help="Instruction bound for enumerated RHS candidates (default: 1)",
    )
    parser.add_argument(
        "--symbolize-no-dataflow",
        action="store_true",
        default=None,
        help="Skip precondition inference for constant-free candidates",
    )
    parser.add_argument(
        "--fixit",
        action="store_true",
        help="Infer the weakest known-bits or range precondition",
    )
    parser.add_argument(
        "--reduce",
        action="store_true",
        help="Minimize rules by replacing instructions with variables",
    )
    parser.add_argument(
        "--reduce-all-results",
        action="store_true",
        default=None,
        help="Print every reduction instead of the shortest",
    )
    parser.add_argument(
        "--generalize-width",
        action="store_true",
        help="Re-instantiate single-variable rules at widths 1 to 63",
    )
    parser.add_argument(
        "--debug-level",
        type=int,
        default=None,
        help="0 = warnings only, 1 = info (default), 2 = debug",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Solver timeout per query in milliseconds (default: none)",
    )
    parser.add_argument(
        "--config",
        type=pathlib.Path,
        default=None,
        help="Options file (default: options.json in the user config dir)",
    )
    parser.add_argument(
        "--log-dir",
        type=pathlib.Path,
        default=None,
        help="Also write a debug log and the z3 queries to this directory",
    )
    return parser


def _read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return pathlib.Path(path).read_text(encoding="utf-8")


def _emit(rules: typing.Iterable[Rule], out: typing.TextIO) -> None:
    for rule in rules:
        out.write(render_rule(rule))
        out.write("\n")


class PassRunner:
    """Runs the selected passes over one rule at a time.

    Oracles are created on first use so that the width resweep, which needs
    none, works without z3 installed.
    """

    def __init__(
        self, args: argparse.Namespace, options: GeneralizeOptions, out: typing.TextIO
    ):
        self.args = args
        self.options = options
        self.out = out
        self.ctx = InstContext()
        self.stats = GeneralizationStatistics()
        self._oracles: Oracles | None = None

    @property
    def oracles(self) -> Oracles:
        if self._oracles is None:
            self._oracles = get_default_oracles(self.options.timeout_ms)
        return self._oracles

    def run(self, index: int, rule: Rule) -> None:
        """Run every selected pass over *rule*.

        A pass that rejects the rule is logged and the remaining passes
        still run on it.
        """
        selected = [
            (self.args.fixit, "fixit", self._fixit),
            (self.args.reduce, "reduce", self._reduce),
            (self.args.symbolize, "symbolize", self._symbolize),
            (self.args.generalize_width, "width", self._width),
        ]
        for enabled, name, run_pass in selected:
            if not enabled:
                continue
            RulegenLogger.update_pass(name, index)
            try:
                run_pass(rule)
            except (InvalidRuleError, UnsupportedOperationError) as e:
                logger.error("%s", e)

    def _fixit(self, rule: Rule) -> None:
        _emit(generalize_preconditions(rule, self.oracles.verifier, self.stats), self.out)

    def _reduce(self, rule: Rule) -> None:
        _emit(
            reduce_rule(
                rule,
                self.ctx,
                self.oracles.verifier,
                print_all=self.options.reduce_print_all,
                stats=self.stats,
            ),
            self.out,
        )

    def _symbolize(self, rule: Rule) -> None:
        _emit(
            symbolize_and_generalize(rule, self.ctx, self.oracles, self.options, self.stats),
            self.out,
        )

    def _width(self, rule: Rule) -> None:
        # All variants are built before any is written
        variants = generalize_width(rule, self.ctx)
        for variant in variants:
            self.out.write(f"; width {variant.width}\n")
            self.out.write(render_mapping(variant.mapping))
            self.out.write("\n")


def main(argv: typing.Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = GeneralizerConfiguration(args.config)
    # An explicit --log-dir wins; otherwise only a log_dir saved in the file
    log_dir = args.log_dir or (config.log_dir if config.get("log_dir") else None)
    configure_loggers(log_dir)
    options = config.options().merged(
        symbolize_num_insts=args.symbolize_num_insts,
        symbolize_no_dataflow=args.symbolize_no_dataflow,
        reduce_print_all=args.reduce_all_results,
        timeout_ms=args.timeout_ms,
        debug_level=args.debug_level,
    )
    LoggerConfigurator.set_debug_level(options.debug_level)

    try:
        text = _read_input(args.input)
    except OSError as e:
        logger.error("Cannot read %s: %s", args.input, e)
        return 1
    runner = PassRunner(args, options, sys.stdout)
    try:
        rules = parse_rules(text, runner.ctx)
    except ParseError as e:
        logger.error("Parse error in %s: %s", args.input, e)
        return 1

    if not (args.fixit or args.reduce or args.symbolize or args.generalize_width):
        logger.warning("No pass selected; nothing to do")
        return 0

    for index, rule in enumerate(rules):
        try:
            runner.run(index, rule)
        except Z3Exception as e:
            logger.error("%s; install z3-solver to run this pass", e)
            return 1
        finally:
            RulegenLogger.reset_pass()

    logger.debug("Number of Results: %d", runner.stats.total(PassEvent.CANDIDATE_ACCEPTED))
    runner.stats.log_report()
    return 0


if __name__ == "__main__":
    sys.exit(main())
