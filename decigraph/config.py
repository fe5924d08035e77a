"""
Configuration — Centralized settings management

Config hierarchy (highest to lowest priority):
  1. Environment variables (DECIGRAPH_AUTHOR, DECIGRAPH_LOG_LEVEL)
  2. Project config (.decigraph/config.yaml)
  3. User config (~/.decigraph/config.yaml)
  4. Defaults

The project config is committed with the logs; put personal settings
(like author.name on a shared machine) in the user config instead.
"""

import os
import re
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from .core.errors import ConfigurationError
from .presentation.symbols import get_symbols
from .utils.logger import LOG_LEVELS, DEFAULT_LEVEL, get_logger

log = get_logger(__name__)


# Author names become log file names
AUTHOR_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$')

DEFAULT_AUTHOR = "anonymous"


def default_author() -> str:
    """Login name when it is usable as a log file name, else 'anonymous'."""
    for var in ("USER", "USERNAME"):
        name = os.environ.get(var, "")
        if AUTHOR_PATTERN.match(name):
            return name
    return DEFAULT_AUTHOR


@dataclass
class AuthorConfig:
    """Who writes: selects the log file this process appends to."""
    name: str = ""

    @property
    def effective_name(self) -> str:
        return self.name or default_author()

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        if self.name and not AUTHOR_PATTERN.match(self.name):
            return (f"Invalid author name '{self.name}'. "
                    f"Use letters, digits, '.', '_' or '-' (it names the log file)")
        return None


@dataclass
class DisplayConfig:
    """Display preferences."""
    symbols: str = "auto"  # "unicode" | "ascii" | "auto"
    format: str = "list"   # "list" | "json"
    limit: int = 20        # Page size for listings

    def validate(self) -> Optional[str]:
        """Validate config. Returns error message or None if valid."""
        valid_symbols = ("unicode", "ascii", "auto")
        if self.symbols not in valid_symbols:
            return f"Unknown symbols setting '{self.symbols}'. Valid: {', '.join(valid_symbols)}"

        valid_formats = ("list", "json")
        if self.format not in valid_formats:
            return f"Unknown format '{self.format}'. Valid: {', '.join(valid_formats)}"

        if not isinstance(self.limit, int) or self.limit < 1:
            return f"Display limit must be a positive integer, got '{self.limit}'"
        return None


@dataclass
class LoggingConfig:
    """Diagnostics verbosity (stderr)."""
    level: str = DEFAULT_LEVEL

    def validate(self) -> Optional[str]:
        if self.level.upper() not in LOG_LEVELS:
            return f"Unknown log level '{self.level}'. Valid: {', '.join(LOG_LEVELS)}"
        return None


@dataclass
class Config:
    """Application configuration."""
    author: AuthorConfig = field(default_factory=AuthorConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "author": {
                "name": self.author.name
            },
            "display": {
                "symbols": self.display.symbols,
                "format": self.display.format,
                "limit": self.display.limit
            },
            "logging": {
                "level": self.logging.level
            }
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create from dictionary."""
        author_data = data.get("author") or {}
        display_data = data.get("display") or {}
        logging_data = data.get("logging") or {}

        limit = display_data.get("limit", 20)
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            pass  # Reported by validate()

        return cls(
            author=AuthorConfig(
                name=str(author_data.get("name") or "")
            ),
            display=DisplayConfig(
                symbols=display_data.get("symbols", "auto"),
                format=display_data.get("format", "list"),
                limit=limit
            ),
            logging=LoggingConfig(
                level=str(logging_data.get("level", DEFAULT_LEVEL)).upper()
            )
        )

    def validate(self) -> Optional[str]:
        for section in (self.author, self.display, self.logging):
            error = section.validate()
            if error:
                return error
        return None


class ConfigManager:
    """
    Manages configuration loading and persistence.

    Hierarchy:
      1. Environment
      2. Project config (.decigraph/config.yaml)
      3. User config (~/.decigraph/config.yaml)
      4. Defaults
    """

    USER_CONFIG_DIR = Path.home() / ".decigraph"
    USER_CONFIG_FILE = "config.yaml"
    PROJECT_CONFIG_DIR = ".decigraph"
    PROJECT_CONFIG_FILE = "config.yaml"

    # Settings accepted by set()/get(), with their section
    KEYS = {
        "author.name": "author",
        "display.symbols": "display",
        "display.format": "display",
        "display.limit": "display",
        "logging.level": "logging",
    }

    def __init__(self, project_dir: Optional[Path] = None):
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._config: Optional[Config] = None

    @property
    def project_config_path(self) -> Path:
        return self.project_dir / self.PROJECT_CONFIG_DIR / self.PROJECT_CONFIG_FILE

    @property
    def user_config_path(self) -> Path:
        return self.USER_CONFIG_DIR / self.USER_CONFIG_FILE

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            log.warning(f"ignoring malformed config {path}: {e}")
            return {}
        if not isinstance(data, dict):
            log.warning(f"ignoring config {path}: top level is not a mapping")
            return {}
        return data

    def load(self) -> Config:
        """Load configuration from all sources."""
        if self._config is not None:
            return self._config

        # Start with defaults
        config_data: Dict[str, Any] = {}

        # Layer 1: User config
        config_data = self._merge(config_data, self._read(self.user_config_path))

        # Layer 2: Project config (higher priority)
        config_data = self._merge(config_data, self._read(self.project_config_path))

        # Layer 3: Environment overrides
        if os.environ.get("DECIGRAPH_AUTHOR"):
            config_data.setdefault("author", {})["name"] = os.environ["DECIGRAPH_AUTHOR"]
        if os.environ.get("DECIGRAPH_LOG_LEVEL"):
            config_data.setdefault("logging", {})["level"] = os.environ["DECIGRAPH_LOG_LEVEL"]

        self._config = Config.from_dict(config_data)
        return self._config

    def _read_scope(self, scope: str) -> Dict[str, Any]:
        path = self.project_config_path if scope == "project" else self.user_config_path
        return self._read(path)

    def _write_scope(self, scope: str, data: Dict[str, Any]):
        path = self.project_config_path if scope == "project" else self.user_config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)

    def set(self, key: str, value: str, scope: str = "project"):
        """
        Set a configuration value.

        Only the named key is written to the chosen file, so a project
        file never picks up values that came from the user file or the
        environment.

        Args:
            key: Dot-separated key (e.g., "display.symbols")
            value: Value to set
            scope: "project" or "user"

        Raises:
            ConfigurationError: Unknown key or invalid value
        """
        if scope not in ("project", "user"):
            raise ConfigurationError(f"Unknown scope '{scope}'. Valid: project, user")
        if key not in self.KEYS:
            raise ConfigurationError(
                f"Unknown setting: {key}. Valid: {', '.join(self.KEYS)}",
                context={"key": key}
            )

        section, setting = key.split(".")
        typed: Any = value
        if key == "display.limit":
            try:
                typed = int(value)
            except ValueError:
                raise ConfigurationError(f"Display limit must be an integer, got '{value}'")
        elif key == "logging.level":
            typed = value.upper()

        # Validate against the merged view with the new value applied
        candidate = Config.from_dict(self._merge(self.load().to_dict(), {section: {setting: typed}}))
        error = candidate.validate()
        if error:
            raise ConfigurationError(error, context={"key": key, "value": value})

        data = self._read_scope(scope)
        data = self._merge(data, {section: {setting: typed}})
        self._write_scope(scope, data)
        self._config = None
        log.info(f"config {key} = {typed} ({scope})")

    def get(self, key: str) -> Optional[str]:
        """Get a configuration value (effective, after all layers)."""
        if key not in self.KEYS:
            return None
        config = self.load()
        if key == "author.name":
            return config.author.effective_name
        section, setting = key.split(".")
        return str(getattr(getattr(config, section), setting))

    def _merge(self, base: Dict, override: Dict) -> Dict:
        """Deep merge two dicts, override wins."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge(result[key], value)
            else:
                result[key] = value
        return result

    def display(self) -> str:
        """Format config for display."""
        config = self.load()
        symbols = get_symbols(config.display.symbols)

        error = config.validate()
        state = f"{symbols.check_fail} {error}" if error else f"{symbols.check_pass} Valid"
        lines = [
            "Configuration:",
            "",
            "Author:",
            f"  Name: {config.author.effective_name}",
            "",
            "Display:",
            f"  Symbols: {config.display.symbols}",
            f"  Format: {config.display.format}",
            f"  Limit: {config.display.limit}",
            "",
            "Logging:",
            f"  Level: {config.logging.level}",
            "",
            f"Status: {state}",
            "",
            "Config files:",
            f"  User: {self.user_config_path}",
            f"  Project: {self.project_config_path}",
        ]
        return "\n".join(lines)


# Convenience function
def get_config(project_dir: Optional[Path] = None) -> Config:
    """Load configuration for a project."""
    return ConfigManager(project_dir).load()
