import collections
import dataclasses
import functools
import logging
import logging.config
import pathlib
import shutil
import threading
import typing

LOG_FILENAME = "rulegen.log"
Z3_QUERY_FILENAME = "z3_queries.smt2"

_config = collections.Counter(version=0)


@dataclasses.dataclass(slots=True)
class LevelFlag:
    """
    LevelFlag provides a fast, zero-allocation cached boolean check for whether a logger is
    enabled for a given level.

    It avoids repeated calls to logger.isEnabledFor(level) inside the minimizer's
    recursion and the enumerator's candidate loops, and automatically refreshes
    its cache when logging configuration changes.

    Example:
        logger = getLogger("rulegen.reduce")
        debug_on = LevelFlag(logger.name, logging.DEBUG)

        # In a hot loop:
        if debug_on:
            logger.debug("Invalid attempt:\\n%s", render_rule(rule))
    """

    _logger_name: str
    _level: int
    _last_version: int = dataclasses.field(default=-1, init=False)
    _cached: bool = dataclasses.field(default=False, init=False)

    def __bool__(self) -> bool:
        current = self.get_config_version()
        if self._last_version != current:
            self._cached = getLogger(self._logger_name).isEnabledFor(self._level)
            self._last_version = current
        return self._cached

    def __repr__(self):
        lvlname = logging.getLevelName(self._level)
        return f"<LevelFlag {self._logger_name}≥{lvlname}>"

    @staticmethod
    def bump_config_version() -> None:
        _config["version"] += 1

    @staticmethod
    def get_config_version() -> int:
        return _config["version"]


class RulegenLogger(logging.Logger):
    """Custom logger that supports a per-thread Mapped Diagnostic Context (MDC).

    The CLI stores the running pass and the index of the rule being processed
    in the MDC so every diagnostic line says which input it belongs to.
    """

    _mdc_local: "threading.local" = threading.local()

    @classmethod
    def mdc(cls) -> typing.Mapping[str, typing.Any]:
        if not getattr(cls._mdc_local, "mdc", None):
            cls.set_mdc({"pass_name": "", "rule_index": ""})
        return getattr(cls._mdc_local, "mdc", {})

    @classmethod
    def set_mdc(cls, d: dict[str, typing.Any]) -> None:
        cls._mdc_local.mdc = d

    # ------------------------------------------------------------------
    # Quick level checks (cached)
    # ------------------------------------------------------------------
    @functools.cached_property
    def debug_on(self) -> LevelFlag:  # noqa: D401
        """Fast flag: is DEBUG enabled for this logger?"""
        return LevelFlag(self.name, logging.DEBUG)

    @functools.cached_property
    def info_on(self) -> LevelFlag:  # noqa: D401
        return LevelFlag(self.name, logging.INFO)

    @functools.cached_property
    def warning_on(self) -> LevelFlag:  # noqa: D401
        return LevelFlag(self.name, logging.WARNING)

    # ---------------------------------------------------------------------
    # MDC helpers
    # ---------------------------------------------------------------------
    @classmethod
    def add_mdc(cls, key: str, value: typing.Any) -> None:
        """Add or update a key/value pair to the thread-local MDC."""
        d = dict(cls.mdc())
        d[key] = value
        cls.set_mdc(d)

    @classmethod
    def get_mdc(cls, key: str, default: typing.Any | None = None):
        """Return the value stored under *key* in the MDC (or *default*)."""
        return cls.mdc().get(key, default)

    @classmethod
    def remove_mdc(cls, key: str) -> None:
        """Remove *key* from the MDC if present."""
        d = dict(cls.mdc())
        d.pop(key, None)
        cls.set_mdc(d)

    @classmethod
    def clean_mdc(cls) -> None:
        """Clear the MDC for the current thread."""
        cls.set_mdc({})

    @classmethod
    def update_pass(cls, pass_name: str, rule_index: int | str = "") -> None:
        cls.add_mdc("pass_name", pass_name)
        cls.add_mdc("rule_index", rule_index)

    @classmethod
    def reset_pass(cls) -> None:
        cls.remove_mdc("pass_name")
        cls.remove_mdc("rule_index")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------
    def makeRecord(
        self,
        name,
        level,
        fn,
        lno,
        msg,
        args,
        exc_info,
        func=None,
        extra: dict[str, typing.Any] | None = None,
        sinfo=None,
    ):
        """Inject the current MDC into every ``LogRecord`` that we create."""
        if not extra:
            extra = {}
        extra.update(self.mdc())
        return super().makeRecord(
            name,
            level,
            fn,
            lno,
            msg,
            args,
            exc_info,
            func=func,
            extra=extra,
            sinfo=sinfo,
        )


class RulegenFormatter(logging.Formatter):
    """Formatter that renders the MDC pass/rule pair as a ``[pass#index]`` tag."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        pass_name = getattr(record, "pass_name", "")
        rule_index = getattr(record, "rule_index", "")
        if pass_name:
            suffix = f"#{rule_index}" if rule_index != "" else ""
            record.context = f" [{pass_name}{suffix}]"
        else:
            record.context = ""

        return super().format(record)


# File paths for handlers are set to `None` initially and will be populated
# by the `configure_loggers` function when a log directory is requested.
conf: dict[str, typing.Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "RulegenFormatter": {
            "()": RulegenFormatter,
            "format": "%(levelname)s%(context)s %(name)s: %(message)s",
        },
        "fileFormatter": {
            "()": RulegenFormatter,
            "format": "%(asctime)s - %(name)s - %(levelname)s%(context)s - %(message)s",
        },
        "rawFormatter": {
            "format": "%(message)s",
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "RulegenFormatter",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "rulegen": {
            "level": "INFO",
            "handlers": ["consoleHandler"],
            "propagate": False,
        },
        "rulegen.oracle": {"level": "INFO"},
        "rulegen.symbolize": {"level": "INFO"},
        "rulegen.fixit": {"level": "INFO"},
        "rulegen.reduce": {"level": "INFO"},
        "rulegen.width": {"level": "INFO"},
        "rulegen.z3_queries": {
            "level": "WARNING",
            "handlers": [],
            "propagate": False,
        },
    },
}

_FILE_HANDLERS: dict[str, typing.Any] = {
    "defaultFileHandler": {
        "class": "logging.FileHandler",
        "level": "DEBUG",
        "formatter": "fileFormatter",
        "filename": LOG_FILENAME,
    },
    "z3FileHandler": {
        "class": "logging.FileHandler",
        "level": "DEBUG",
        "formatter": "rawFormatter",
        "filename": Z3_QUERY_FILENAME,
    },
}

DEBUG_LEVELS: dict[int, int] = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


class LoggerConfigurator:
    """
    Utility to dynamically query and set logger levels at runtime.
    """

    @staticmethod
    def available_loggers(
        prefix: str | typing.Iterable[str] | None = None,
        case_insensitive: bool = False,
    ) -> list[str]:
        """
        Return a deduped, sorted list of all logger names, with optional prefix filtering.

        - Any module that's been imported and that did getLogger(__name__) will show up.
        - Any logger statically declared in conf["loggers"] shows up as well.
        - If `prefix` is provided, filter to names equal to or starting with prefix + '.'.
        - If `prefix` is a list or other iterable, match any of the prefixes.
        - If `case_insensitive` is True, perform case-insensitive matching.
        """
        mgr = logging.Logger.manager
        dyn = {
            name
            for name, logger in mgr.loggerDict.items()
            if isinstance(logger, logging.Logger)
        }
        stat = set(conf["loggers"].keys())

        all_names = dyn | stat

        if prefix is None:
            return sorted(all_names)

        if isinstance(prefix, str):
            prefixes = [prefix]
        else:
            prefixes = list(prefix)

        if case_insensitive:
            prefixes = [p.lower() for p in prefixes]

            def match(name: str) -> bool:
                lname = name.lower()
                return any(lname == p or lname.startswith(p + ".") for p in prefixes)

        else:

            def match(name: str) -> bool:
                return any(name == p or name.startswith(p + ".") for p in prefixes)

        return sorted(filter(match, all_names))

    @staticmethod
    def get_level(name: str) -> int:
        """Return the effective level for logger `name`."""
        return getLogger(name).getEffectiveLevel()

    @staticmethod
    def set_level(logger_name: str, level_name: str) -> None:
        """
        Change the level for `logger_name` to one of DEBUG, INFO, WARNING, ERROR, CRITICAL.
        """
        lvl = getattr(logging, level_name.upper(), None)
        if not isinstance(lvl, int):
            raise ValueError(f"Unknown logging level: {level_name}")
        getLogger(logger_name, lvl).setLevel(lvl)
        LevelFlag.bump_config_version()

    @staticmethod
    def set_debug_level(debug_level: int) -> None:
        """Map the CLI ``--debug-level`` onto every ``rulegen`` logger."""
        lvl = DEBUG_LEVELS.get(debug_level, logging.DEBUG)
        for name in LoggerConfigurator.available_loggers("rulegen"):
            if name == "rulegen.z3_queries":
                continue
            getLogger(name, lvl).setLevel(lvl)
        LevelFlag.bump_config_version()


def clear_logs(log_dir: str | pathlib.Path) -> None:
    """Removes the log directory."""
    shutil.rmtree(log_dir, ignore_errors=True)


def configure_loggers(log_dir: str | pathlib.Path | None = None) -> None:
    """
    Configures the loggers from ``conf``.

    Console output always goes to stderr so stdout carries nothing but rules.
    When *log_dir* is given, a debug-level log file and a raw z3 query dump
    are written there as well.
    """
    cfg = {
        **conf,
        "handlers": dict(conf["handlers"]),
        "loggers": {k: dict(v) for k, v in conf["loggers"].items()},
    }
    if log_dir is not None:
        log_dir = pathlib.Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        for handler_name, handler in _FILE_HANDLERS.items():
            handler = dict(handler)
            handler["filename"] = (log_dir / handler["filename"]).as_posix()
            cfg["handlers"][handler_name] = handler
        cfg["loggers"]["rulegen"]["handlers"] = ["consoleHandler", "defaultFileHandler"]
        cfg["loggers"]["rulegen.z3_queries"]["handlers"] = ["z3FileHandler"]
        cfg["loggers"]["rulegen.z3_queries"]["level"] = "DEBUG"

    logging.config.dictConfig(cfg)
    LevelFlag.bump_config_version()


def getLogger(name: str, default_level: int = logging.INFO) -> RulegenLogger:
    """Return a :class:`RulegenLogger`.

    When wrapping an existing logger whose ``propagate`` flag is *False*
    **and** that has **no handlers**, the record would be lost.  We flip
    ``propagate`` back to *True* so that messages bubble to the root
    handlers.
    """

    name = name or __name__
    base = logging.getLogger(name)
    if isinstance(base, RulegenLogger):
        return base
    loglvl = base.level
    if loglvl == logging.NOTSET or loglvl < default_level:
        loglvl = default_level
    new = RulegenLogger(base.name, level=loglvl)
    new.handlers = list(base.handlers)
    new.filters = list(base.filters)
    new.propagate = base.propagate
    new.disabled = base.disabled
    # Preserve the hierarchical parent so records still reach the handlers
    # installed on "rulegen" by configure_loggers.
    new.parent = base.parent
    if not new.handlers and not new.propagate:
        new.propagate = True

    # Children created before the swap still point at the plain Logger.
    for child in logging.Logger.manager.loggerDict.values():
        if isinstance(child, logging.Logger) and child.parent is base:
            child.parent = new
    logging.Logger.manager.loggerDict[name] = new
    return new
