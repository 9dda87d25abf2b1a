"""Configuration for the guideline lint group.

Config priority (highest to lowest):
1. Environment variables (GUIDELINT_* prefixed, lists comma separated)
2. guidelint.yml in the project root, or an explicit --config file
3. Built-in defaults
"""

import copy
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from guidelint.errors import ConfigError
from guidelint.utils.logging import logger

CONFIG_FILE_NAME = "guidelint.yml"
ENV_PREFIX = "GUIDELINT_"

DEFAULTS: dict[str, Any] = {
    "mem_unsafe_functions": [
        "memcpy",
        "memmove",
        "memset",
        "strcat",
        "strcpy",
        "strncat",
        "strncpy",
        "sprintf",
        "vsprintf",
        "gets",
    ],
    "io_functions": [
        "std::io::stdin",
        "std::io::Stdin::read_line",
        "std::io::BufRead::read_line",
        "std::io::Read::read",
        "std::io::Read::read_to_end",
        "std::io::Read::read_to_string",
        "std::fs::read",
        "std::fs::read_to_string",
        "std::env::var",
        "std::env::args",
    ],
    "lib_loading_functions": [
        "dlopen",
        "libloading::Library::new",
        "libloading::os::unix::Library::new",
        "libloading::os::windows::Library::new",
    ],
    "allow_io_blocking_ops": False,
    "alloc_size_check_functions": [],
    "mem_alloc_functions": [
        "malloc",
        "calloc",
        "realloc",
        "std::alloc::alloc",
        "std::alloc::alloc_zeroed",
        "std::alloc::realloc",
    ],
    "non_reentrant_functions": [
        "asctime",
        "ctime",
        "getenv",
        "getgrgid",
        "getgrnam",
        "gethostbyname",
        "getlogin",
        "getpwnam",
        "getpwuid",
        "gmtime",
        "localtime",
        "rand",
        "readdir",
        "setenv",
        "strerror",
        "strtok",
        "tmpnam",
    ],
    "mem_free_functions": [
        "free",
        "std::alloc::dealloc",
    ],
}


@dataclass
class GuidelinesConfig:
    """User-tunable inputs of one analysis run."""

    mem_unsafe_functions: list[str] = field(
        default_factory=lambda: list(DEFAULTS["mem_unsafe_functions"])
    )
    io_functions: list[str] = field(default_factory=lambda: list(DEFAULTS["io_functions"]))
    lib_loading_functions: list[str] = field(
        default_factory=lambda: list(DEFAULTS["lib_loading_functions"])
    )
    allow_io_blocking_ops: bool = False
    alloc_size_check_functions: list[str] = field(default_factory=list)
    mem_alloc_functions: list[str] = field(
        default_factory=lambda: list(DEFAULTS["mem_alloc_functions"])
    )
    non_reentrant_functions: list[str] = field(
        default_factory=lambda: list(DEFAULTS["non_reentrant_functions"])
    )
    mem_free_functions: list[str] = field(
        default_factory=lambda: list(DEFAULTS["mem_free_functions"])
    )

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "GuidelinesConfig":
        """Build a config from a mapping, rejecting unknown keys and wrong types."""
        known = {f.name for f in fields(cls)}
        values = copy.deepcopy(DEFAULTS)
        for key, value in data.items():
            if key not in known:
                raise ConfigError(f"Unknown configuration key: {key}", {"key": key})
            if isinstance(DEFAULTS[key], bool):
                if not isinstance(value, bool):
                    raise ConfigError(f"'{key}' must be a boolean", {"key": key, "value": value})
            elif not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(
                    f"'{key}' must be a list of strings", {"key": key, "value": value}
                )
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: copy.deepcopy(getattr(self, f.name)) for f in fields(self)}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_guidelines_config(
    root: str | Path = ".", config_path: str | Path | None = None
) -> GuidelinesConfig:
    """Load configuration from a YAML file and environment variables.

    Args:
        root: Directory searched for guidelint.yml when config_path is not given
        config_path: Explicit configuration file; must exist

    Returns:
        The merged GuidelinesConfig

    Raises:
        ConfigError: if the file cannot be parsed or holds ill-typed values
    """
    data: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
    else:
        path = Path(root) / CONFIG_FILE_NAME

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (yaml.YAMLError, OSError) as e:
            raise ConfigError(f"Could not load config file {path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        logger.debug("Loaded configuration from {path}", path=str(path))
        data.update(loaded)

    for key, default in DEFAULTS.items():
        env_var = f"{ENV_PREFIX}{key.upper()}"
        if env_var not in os.environ:
            continue
        raw = os.environ[env_var]
        if isinstance(default, bool):
            data[key] = _parse_bool(raw)
        else:
            data[key] = [v.strip() for v in raw.split(",") if v.strip()]
        logger.debug("Configuration key {key} overridden by {env}", key=key, env=env_var)

    return GuidelinesConfig.from_mapping(data)
