"""Packaging for rulegen.

rulegen installs as a pure Python package from ``src/``:

    pip install -e .[test]

z3-solver is a hard dependency: every pass except the width resweep talks
to the z3 oracles.
"""

import pathlib
import re

from setuptools import find_packages, setup

ROOT = pathlib.Path(__file__).parent


def get_version() -> str:
    """Read ``__version__`` from the package without importing it."""
    text = (ROOT / "src" / "rulegen" / "__init__.py").read_text(encoding="utf-8")
    match = re.search(r'^__version__ = "([^"]+)"', text, re.MULTILINE)
    if match is None:
        raise RuntimeError("Unable to find __version__ in src/rulegen/__init__.py")
    return match.group(1)


setup(
    name="rulegen",
    version=get_version(),
    description="Generalize verified peephole rewrite rules over bit-vector DAGs",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["rulegen", "rulegen.*"]),
    install_requires=["z3-solver>=4.8"],
    extras_require={"test": ["pytest>=7"]},
    entry_points={"console_scripts": ["rulegen=rulegen.cli:main"]},
)
