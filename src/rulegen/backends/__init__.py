"""Oracle backends.

    z3        - Z3VerificationOracle, Z3ConstantSynthesizer (requires z3-solver)
    enumerate - BottomUpEnumerator (pure Python)

Import the submodules directly; this package does not import z3 eagerly.
"""
