"""Configuration model for the DICOM file sorter."""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field, fields, is_dataclass, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Tuple

import tomli_w

from ..exceptions import ConfigurationError
from .sorting import RetryPolicy

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL")


class PathGeneratorType(Enum):
    """Naming schemes available for identified DICOM files."""
    DEFAULT = "dicom_default"
    UZG = "dicom_uzg"

    @classmethod
    def parse(cls, value: str) -> "PathGeneratorType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            accepted = ", ".join(t.value for t in cls)
            raise ConfigurationError(
                f"Invalid path generator {value!r} (accepted values: {accepted})"
            ) from None


@dataclass
class PathsConfig:
    """Directories where the data is read from and written to."""
    input_dir: Path = Path("input")
    output_dir: Path = Path("output")
    unknown_dir: Path = Path("unknown")


@dataclass
class PathGeneratorsConfig:
    """Path generator used for identified DICOM data."""
    dicom: str = PathGeneratorType.DEFAULT.value


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"


@dataclass
class OtherConfig:
    """Timing, retry and batch limits."""
    wait_time_millisec: int = 500
    io_timeout_millisec: int = 500
    copy_attempts: int = 100
    remove_attempts: int = 10
    mtime_delay_secs: int = 10
    limit_unique_filenames: int = 1000
    limit_max_processed_files: int = 1000
    recursive: bool = True
    remove_empty_dirs: bool = True


@dataclass
class Config:
    """Main configuration model."""
    paths: PathsConfig = field(default_factory=PathsConfig)
    path_generators: PathGeneratorsConfig = field(default_factory=PathGeneratorsConfig)
    log: LogConfig = field(default_factory=LogConfig)
    other: OtherConfig = field(default_factory=OtherConfig)

    @property
    def generator_type(self) -> PathGeneratorType:
        return PathGeneratorType.parse(self.path_generators.dicom)

    @property
    def log_level(self) -> int:
        level = self.log.level.upper()
        if level == "TRACE":
            return logging.DEBUG
        if level == "WARN":
            return logging.WARNING
        return getattr(logging, level, logging.INFO)

    def retry_policies(self) -> Tuple[RetryPolicy, RetryPolicy]:
        """Return the (copy, remove) retry policies."""
        delay = self.other.io_timeout_millisec / 1000.0
        return (
            RetryPolicy(self.other.copy_attempts, delay),
            RetryPolicy(self.other.remove_attempts, delay),
        )

    def validate(self) -> None:
        """Check option values; raises ConfigurationError on the first problem."""
        PathGeneratorType.parse(self.path_generators.dicom)

        if self.log.level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.log.level}")

        positive = (
            "copy_attempts",
            "remove_attempts",
            "limit_max_processed_files",
        )
        for name in positive:
            if getattr(self.other, name) < 1:
                raise ConfigurationError(f"'{name}' must be at least 1")

        non_negative = (
            "wait_time_millisec",
            "io_timeout_millisec",
            "mtime_delay_secs",
            "limit_unique_filenames",
        )
        for name in non_negative:
            if getattr(self.other, name) < 0:
                raise ConfigurationError(f"'{name}' cannot be negative")

        roots = {
            "input_dir": self.paths.input_dir,
            "output_dir": self.paths.output_dir,
            "unknown_dir": self.paths.unknown_dir,
        }
        for name, root in roots.items():
            if not str(root):
                raise ConfigurationError(f"'{name}' is not set")

        input_dir = _absolute(self.paths.input_dir)
        for name in ("output_dir", "unknown_dir"):
            other = _absolute(roots[name])
            if other == input_dir or other.is_relative_to(input_dir):
                raise ConfigurationError(
                    f"'{name}' ({other}) must not be inside the input directory ({input_dir})"
                )

    def create_dirs(self) -> None:
        """Create the input, output and unknown directories when missing."""
        for root in (self.paths.input_dir, self.paths.output_dir, self.paths.unknown_dir):
            try:
                root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(f"Unable to create directory {root}: {e}") from e

    def check_roots(self) -> None:
        """Ensure every root is an accessible directory."""
        checks = (
            (self.paths.input_dir, os.R_OK | os.W_OK),
            (self.paths.output_dir, os.W_OK),
            (self.paths.unknown_dir, os.W_OK),
        )
        for root, mode in checks:
            if not root.is_dir():
                raise ConfigurationError(f"Not a directory: {root}")
            if not os.access(root, mode | os.X_OK):
                raise ConfigurationError(f"Insufficient permissions for directory: {root}")


def _absolute(path: Path) -> Path:
    return Path(os.path.abspath(path.expanduser()))


def _dataclass_to_dict(obj):
    """Convert dataclass to dict recursively."""
    if is_dataclass(obj):
        return {key: _dataclass_to_dict(value) for key, value in asdict(obj).items()}
    elif isinstance(obj, Path):
        return str(obj)
    elif isinstance(obj, dict):
        return {key: _dataclass_to_dict(value) for key, value in obj.items()}
    else:
        return obj


def _dict_to_dataclass(data: Dict[str, Any], dataclass_type):
    """Convert dict to dataclass recursively, rejecting unknown keys."""
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a table for {dataclass_type.__name__}, got {type(data).__name__}"
        )

    known = {f.name: f for f in fields(dataclass_type)}
    unknown = set(data) - set(known)
    if unknown:
        raise ConfigurationError(
            f"Unknown option(s) in {dataclass_type.__name__}: {', '.join(sorted(unknown))}"
        )

    defaults = dataclass_type()
    kwargs = {}
    for name, value in data.items():
        current = getattr(defaults, name)
        if is_dataclass(current):
            kwargs[name] = _dict_to_dataclass(value, type(current))
        elif isinstance(current, Path):
            kwargs[name] = Path(value).expanduser()
        elif isinstance(current, bool):
            if not isinstance(value, bool):
                raise ConfigurationError(f"Option '{name}' must be a boolean")
            kwargs[name] = value
        elif isinstance(current, int):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"Option '{name}' must be an integer")
            kwargs[name] = value
        else:
            kwargs[name] = str(value)

    return dataclass_type(**kwargs)


def config_from_dict(data: Dict[str, Any]) -> Config:
    """Build and validate a Config from parsed TOML/JSON data."""
    if "paths" not in data:
        raise ConfigurationError("Missing [paths] section in configuration")
    config = _dict_to_dataclass(data, Config)
    config.validate()
    return config


def load_config(config_path: Path) -> Config:
    """Load configuration from a TOML (or JSON) file."""
    try:
        with open(config_path, "rb") as f:
            if config_path.suffix.lower() == ".json":
                config_data = json.load(f)
            else:
                config_data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Config file not found: {config_path}") from None
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to parse config file {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {config_path}: {e}") from e

    return config_from_dict(config_data)


def save_config(config: Config, config_path: Path) -> None:
    """Save configuration to a TOML (or JSON) file."""
    config_dict = _dataclass_to_dict(config)

    if config_path.suffix.lower() == ".json":
        with open(config_path, "w") as f:
            json.dump(config_dict, f, indent=2)
    else:
        with open(config_path, "wb") as f:
            tomli_w.dump(config_dict, f)


def create_default_config(config_path: Path) -> Config:
    """Create a default configuration file."""
    default_config = Config(
        paths=PathsConfig(
            input_dir=Path("/path/to/input"),
            output_dir=Path("/path/to/output"),
            unknown_dir=Path("/path/to/unknown"),
        )
    )
    save_config(default_config, config_path)
    return default_config
