"""Pytest configuration for rulegen tests.

Shared fixtures for all test suites. Tests that talk to the z3 oracles skip
themselves when z3-solver is not installed.
"""

import logging
import pathlib
import sys

import pytest

# Configure logging
logging.basicConfig(level=logging.INFO)

# Add project root to path for all tests to ensure imports work
PROJECT_ROOT = pathlib.Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))
sys.path.insert(0, str(PROJECT_ROOT / "tests"))

from rulegen.inst import InstContext, parse_rule  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "z3: mark test as requiring z3-solver")
    config.addinivalue_line("markers", "slow: mark test as issuing many solver queries")


@pytest.fixture
def ctx() -> InstContext:
    """A fresh instruction arena per test."""
    return InstContext()


@pytest.fixture
def rule_from(ctx):
    """Parse one rule into the test's arena.

    Example:
        def test_something(rule_from):
            rule = rule_from('''
            %x:i8 = var
            infer %x
            result %x
            ''')
    """

    def parse(text: str):
        return parse_rule(text, ctx)

    return parse


@pytest.fixture(scope="session")
def z3_oracles():
    """The default z3-backed oracle bundle."""
    pytest.importorskip("z3")
    from rulegen.oracles import get_default_oracles

    return get_default_oracles()


@pytest.fixture(scope="session")
def z3_verifier(z3_oracles):
    return z3_oracles.verifier
