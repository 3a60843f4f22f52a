"""
Settings for a provisioning run.

Values come from YAML (or JSON) files found in the project directory and
the user's config directory, plus an optional file named on the command
line. Settings written in a file win over files searched later.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any

import yaml

from .common import expand_path
from .logging_config import LEVELS


logger = logging.getLogger(__name__)


# Searched in this order after --config; earlier files win
CONFIG_LOCATIONS = [
    ".workstation-setup.yml",
    ".workstation-setup.yaml",
    os.path.expanduser("~/.config/workstation-setup/config.yml"),
    os.path.expanduser("~/.config/workstation-setup/config.yaml"),
]

DEFAULT_TIMEOUT_SECONDS = 300
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS = 60
DEFAULT_TEMP_MAX_AGE_DAYS = 7

DEFAULT_NEXT_STEPS = (
    "Open a new terminal so PATH changes made by the installers take effect.",
    "Sign in to the applications that need an account (editor sync, browser).",
    "Re-run this tool at any time; items already present are skipped.",
)


# Settings where a higher-priority file replaces a lower-priority one
MERGED_FIELDS = (
    "log_level",
    "log_file",
    "timeout_seconds",
    "download_timeout_seconds",
    "scratch_dir",
    "catalog",
    "next_steps",
    "temp_max_age_days",
)


def default_scratch_dir() -> str:
    """Private scratch directory for downloaded installers."""
    return os.path.join(tempfile.gettempdir(), "workstation-setup")


@dataclass(frozen=True)
class Config:
    """
    Complete configuration for a provisioning run.

    Attributes:
        version: Config schema version
        log_level: Console threshold (Debug, Info, Warning, Error)
        log_file: Optional log file path (always records DEBUG)
        timeout_seconds: Upper bound for one installer subprocess
        download_timeout_seconds: Socket timeout for installer downloads
        scratch_dir: Directory for downloaded installers (temp dir if unset)
        extra_paths: Directories searched for executables besides PATH
        catalog: Path to the descriptor catalog (built-in catalog if unset)
        next_steps: Follow-up guidance printed after a fully successful run
        temp_max_age_days: Age after which scratch files are cleaned up
        source: Path to the configuration file that was loaded
        explicit: Settings written in the source file, even when equal to the default
    """
    version: int = 1
    log_level: str = "Info"
    log_file: str | None = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    download_timeout_seconds: int = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS
    scratch_dir: str | None = None
    extra_paths: tuple[str, ...] = ()
    catalog: str | None = None
    next_steps: tuple[str, ...] = DEFAULT_NEXT_STEPS
    temp_max_age_days: int = DEFAULT_TEMP_MAX_AGE_DAYS
    source: str = ""
    explicit: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    def __post_init__(self):
        """Validate config after initialization."""
        if self.version != 1:
            raise ValueError(f"Unsupported config version: {self.version}. Expected version 1")

        if str(self.log_level).upper() not in LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. "
                "Must be one of: Debug, Info, Warning, Error"
            )

        if self.timeout_seconds < 1 or self.timeout_seconds > 3600:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 3600"
            )

        if self.download_timeout_seconds < 1 or self.download_timeout_seconds > 600:
            raise ValueError(
                f"Invalid download_timeout_seconds: {self.download_timeout_seconds}. "
                "Must be between 1 and 600"
            )

        if self.temp_max_age_days < 0:
            raise ValueError(
                f"Invalid temp_max_age_days: {self.temp_max_age_days}. Must be 0 or greater"
            )

    @property
    def effective_scratch_dir(self) -> str:
        """Scratch directory with the temp-dir default applied."""
        return self.scratch_dir or default_scratch_dir()

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> Config:
        """Create Config from dictionary."""
        next_steps = data.get("next_steps")
        return Config(
            version=data.get("version", 1),
            log_level=data.get("log_level", "Info"),
            log_file=data.get("log_file"),
            timeout_seconds=data.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            download_timeout_seconds=data.get("download_timeout_seconds", DEFAULT_DOWNLOAD_TIMEOUT_SECONDS),
            scratch_dir=data.get("scratch_dir"),
            extra_paths=tuple(data.get("extra_paths") or ()),
            catalog=data.get("catalog"),
            next_steps=tuple(next_steps) if next_steps is not None else DEFAULT_NEXT_STEPS,
            temp_max_age_days=data.get("temp_max_age_days", DEFAULT_TEMP_MAX_AGE_DAYS),
            source=source,
            explicit=frozenset(key for key in data if key in MERGED_FIELDS),
        )

    def sets(self, name: str) -> bool:
        """Whether a setting was given rather than left at its default."""
        return name in self.explicit or getattr(self, name) != getattr(_DEFAULTS, name)

    def merge_with(self, other: Config) -> Config:
        """
        Merge with a lower-priority config.

        A setting given here wins, including one written out with its
        default value. Extra paths accumulate, this config's entries first.
        """
        values = {
            name: getattr(self, name) if self.sets(name) else getattr(other, name)
            for name in MERGED_FIELDS
        }
        merged_paths = list(self.extra_paths)
        merged_paths.extend(p for p in other.extra_paths if p not in merged_paths)

        return Config(
            version=self.version,
            extra_paths=tuple(merged_paths),
            source=self.source or other.source,
            explicit=self.explicit | other.explicit,
            **values,
        )


_DEFAULTS = Config()


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def _load_json(file_path: str) -> dict[str, Any] | None:
    """
    Load JSON configuration file.

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return None


def load_config_file(file_path: str) -> Config | None:
    """Read one config file; None when it is absent, unreadable or invalid."""
    if not os.path.exists(file_path):
        return None

    reader = _load_json if file_path.endswith(".json") else _load_yaml
    data = reader(file_path)
    if data is None:
        logger.warning(f"Cannot parse config file {file_path}, ignoring it")
        return None

    try:
        config = Config.from_dict(data, source=file_path)
    except (ValueError, TypeError) as e:
        logger.warning(f"Ignoring config file {file_path}: {e}")
        return None
    logger.debug(f"Read config file {file_path} ({', '.join(sorted(config.explicit)) or 'no settings'})")
    return config


def load_config(custom_path: str | None = None) -> Config:
    """
    Build the effective configuration.

    ``custom_path`` is read first and must load; every file in
    CONFIG_LOCATIONS that exists follows. With no file at all the
    built-in defaults apply.

    Raises:
        ValueError: If custom_path cannot be loaded
    """
    paths = [custom_path] if custom_path else []
    paths.extend(CONFIG_LOCATIONS)

    merged: Config | None = None
    for path in paths:
        config = load_config_file(path)
        if config is None:
            if path == custom_path:
                raise ValueError(f"Could not load config from specified path: {custom_path}")
            continue
        merged = config if merged is None else merged.merge_with(config)

    if merged is None:
        logger.debug("No config file found, using defaults")
        return Config()
    return merged


def validate_config(config: Config) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: Config object to validate

    Returns:
        List of validation warning messages (empty if valid)
    """
    warnings = []

    for path in config.extra_paths:
        if not os.path.isdir(expand_path(path)):
            warnings.append(f"Extra search path does not exist: {path}")

    if len(config.extra_paths) != len(set(config.extra_paths)):
        warnings.append("Duplicate entries in extra_paths")

    if config.catalog and not os.path.exists(config.catalog):
        warnings.append(f"Catalog file not found: {config.catalog}")

    return warnings
