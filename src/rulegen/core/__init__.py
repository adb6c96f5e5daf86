"""
rulegen.core: solver-independent utilities and infrastructure.

Modules:
    bits    - arbitrary-width bit-vector helpers (masks, known-bits strings)
    config  - GeneralizeOptions and GeneralizerConfiguration
    logging - RulegenLogger with MDC support, configure_loggers
    stats   - GeneralizationStatistics counters
"""

# Logging
from .logging import (
    RulegenLogger,
    getLogger,
    configure_loggers,
    clear_logs,
    LoggerConfigurator,
    LevelFlag,
)

# Configuration
from .config import (
    ConfigConstants,
    GeneralizeOptions,
    GeneralizerConfiguration,
    DEFAULT_USER_DIR,
)

# Statistics
from .stats import GeneralizationStatistics, PassEvent

# Bit-vector helpers
from .bits import (
    mask,
    msb,
    popcount,
    to_signed,
    to_unsigned,
    known_bits_string,
    parse_known_bits,
)
