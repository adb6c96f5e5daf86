import dataclasses
import json
import os
import pathlib
import sys
import typing

from .logging import getLogger

logger = getLogger(__name__)


def _get_default_user_dir() -> pathlib.Path:
    """Return the default per-user configuration directory.

    Default locations:
    - Windows: %APPDATA%/rulegen
    - Linux/Mac: $XDG_CONFIG_HOME/rulegen, falling back to ~/.config/rulegen
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return pathlib.Path(appdata) / "rulegen"
        return pathlib.Path.home() / "AppData" / "Roaming" / "rulegen"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return pathlib.Path(xdg) / "rulegen"
    return pathlib.Path.home() / ".config" / "rulegen"


DEFAULT_USER_DIR = _get_default_user_dir()


@dataclasses.dataclass(frozen=True, slots=True)
class ConfigConstants:
    OPTIONS_FILENAME: typing.ClassVar[str] = "options.json"
    # Utility assigned to a candidate that needs no precondition at all.
    SENTINEL_UTILITY: typing.ClassVar[int] = 1000
    # Width resweep covers [MIN_WIDTH, MAX_WIDTH).
    MIN_WIDTH: typing.ClassVar[int] = 1
    MAX_WIDTH: typing.ClassVar[int] = 64

    @staticmethod
    def default_log_dir(user_dir: pathlib.Path | None = None) -> pathlib.Path:
        """Return the default log directory based on the user dir."""
        base = user_dir if user_dir is not None else DEFAULT_USER_DIR
        return base / "logs"


@dataclasses.dataclass(slots=True)
class GeneralizeOptions:
    """
    Tunables shared by the generalization passes.

    >>> opts = GeneralizeOptions(symbolize_num_insts=2)
    >>> opts.to_dict()["symbolize_num_insts"]
    2
    >>> GeneralizeOptions.from_dict({"reduce_print_all": True}).reduce_print_all
    True
    """

    symbolize_num_insts: int = 1
    symbolize_no_dataflow: bool = False
    synthesis_max_attempts: int = 30
    synthesis_cex_budget: int = 10
    synthesis_avoid_trivial: bool = True
    reduce_print_all: bool = False
    timeout_ms: int = 0
    debug_level: int = 1

    def to_dict(self) -> dict[str, typing.Any]:
        """Serializes the options to a dictionary."""
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, typing.Any]) -> "GeneralizeOptions":
        """Creates options from a dictionary, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown options: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})

    def merged(self, **overrides: typing.Any) -> "GeneralizeOptions":
        """Return a copy with every override that is not ``None`` applied."""
        return dataclasses.replace(
            self, **{k: v for k, v in overrides.items() if v is not None}
        )


class GeneralizerConfiguration:
    """
    Manages application-wide configuration from a JSON file, offering
    dictionary-like access.

    >>> import tempfile
    >>> temp_dir = tempfile.TemporaryDirectory()
    >>> config_path = pathlib.Path(temp_dir.name) / "options.json"
    >>> config_path.write_text('{"symbolize_num_insts": 2}')
    26
    >>> config = GeneralizerConfiguration(config_path)
    >>> config["symbolize_num_insts"]
    2
    >>> config.options().symbolize_num_insts
    2
    >>> config["log_dir"] = "/new/logs"
    >>> str(config.log_dir)
    '/new/logs'
    >>> config.save()
    >>> json.loads(config_path.read_text())["log_dir"]
    '/new/logs'
    >>> temp_dir.cleanup()
    """

    def __init__(
        self,
        config_path: pathlib.Path | str | None = None,
        *,
        user_dir: pathlib.Path | str | None = None,
    ):
        """
        Initializes and loads the configuration.

        Args:
            config_path: Path to the JSON config file. If None, defaults to
                         'options.json' in the user's configuration directory.
            user_dir: Overrides the per-user configuration directory.
        """
        self._user_dir = (
            pathlib.Path(user_dir) if user_dir is not None else DEFAULT_USER_DIR
        )
        if config_path is not None:
            self.config_file = pathlib.Path(config_path)
        else:
            self.config_file = self._user_dir / ConfigConstants.OPTIONS_FILENAME

        self._options: dict[str, typing.Any] = {}
        self._load()

    def _load(self) -> None:
        """Loads configuration from the JSON file, handling potential errors."""
        try:
            with self.config_file.open("r", encoding="utf-8") as fp:
                self._options = json.load(fp)
            logger.debug("Loaded configuration from %s", self.config_file)
        except FileNotFoundError:
            logger.debug("Configuration file %s not found; using defaults", self.config_file)
            self._options = {}
        except json.JSONDecodeError:
            logger.error("Failed to parse config file: %s", self.config_file)
            self._options = {}

    def save(self) -> None:
        """Saves the current configuration to the JSON file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with self.config_file.open("w", encoding="utf-8") as fp:
                json.dump(self._options, fp, indent=2)
            logger.info("Configuration saved to %s", self.config_file)
        except OSError as e:
            logger.error("Failed to save configuration to %s: %s", self.config_file, e)

    def options(self) -> GeneralizeOptions:
        """Typed view of the pass options stored in the file."""
        data = {k: v for k, v in self._options.items() if k != "log_dir"}
        return GeneralizeOptions.from_dict(data)

    @property
    def user_dir(self) -> pathlib.Path:
        return self._user_dir

    @property
    def log_dir(self) -> pathlib.Path:
        """Returns the configured log directory, or dynamically computes default if not set."""
        path_str = self._options.get("log_dir")
        if not path_str:
            path_str = str(ConfigConstants.default_log_dir(self._user_dir))
            self._options["log_dir"] = path_str
        return pathlib.Path(path_str)

    def __getitem__(self, name: str) -> typing.Any:
        """Provides dictionary-style read access."""
        return self._options[name]

    def __setitem__(self, name: str, value: typing.Any) -> None:
        """Provides dictionary-style write access."""
        self._options[name] = value

    def __contains__(self, name: str) -> bool:
        return name in self._options

    def get(self, name: str, default: typing.Any = None) -> typing.Any:
        """Provides dictionary-style read access with a default value."""
        return self._options.get(name, default)

    def set(self, name: str, value: typing.Any) -> None:
        """Provides dictionary-style write access."""
        self._options[name] = value
