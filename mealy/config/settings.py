"""Configuration for the mealy command-line tool.

Configuration can be loaded from a YAML file and is validated before use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from mealy.utils.result import ConfigError, Err, Ok, Result

DEFAULT_CONFIG_FILE = "mealy.yaml"

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")
LOG_FORMATS = ("json", "text")


@dataclass
class EngineConfig:
    """Runner settings."""

    # Log every transition at debug level
    trace: bool = False
    # Collect emitted values
    emitting: bool = True


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "warning"
    format: str = "json"


@dataclass
class MealyConfig:
    """Complete configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Path the configuration was read from, if any
    source: Optional[Path] = None

    @classmethod
    def from_yaml(cls, path: Path) -> Result["MealyConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        result = cls.from_dict(data)
        if result.is_ok():
            result.unwrap().source = path
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["MealyConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        if not isinstance(data, dict):
            return Err(ConfigError(field="<root>", message="Must be a mapping"))

        engine_data = data.get("engine") or {}
        logging_data = data.get("logging") or {}
        for name, section in (("engine", engine_data), ("logging", logging_data)):
            if not isinstance(section, dict):
                return Err(ConfigError(field=name, message="Must be a mapping"))

        engine = EngineConfig(
            trace=engine_data.get("trace", False),
            emitting=engine_data.get("emitting", True),
        )
        logging_config = LoggingConfig(
            level=str(logging_data.get("level", "warning")),
            format=str(logging_data.get("format", "json")),
        )

        config = cls(engine=engine, logging=logging_config)

        validation_result = config.validate()
        if validation_result.is_err():
            return Err(validation_result.unwrap_err())

        return Ok(config)

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        for name, value in [
            ("engine.trace", self.engine.trace),
            ("engine.emitting", self.engine.emitting),
        ]:
            if not isinstance(value, bool):
                return Err(ConfigError(
                    field=name,
                    message=f"Must be true or false, got {value!r}",
                ))

        if self.logging.level.lower() not in LOG_LEVELS:
            return Err(ConfigError(
                field="logging.level",
                message=f"Must be one of {', '.join(LOG_LEVELS)}, got {self.logging.level!r}",
            ))

        if self.logging.format.lower() not in LOG_FORMATS:
            return Err(ConfigError(
                field="logging.format",
                message=f"Must be one of {', '.join(LOG_FORMATS)}, got {self.logging.format!r}",
            ))

        return Ok(None)


def load_config(path: Path = None) -> Result[MealyConfig, ConfigError]:
    """
    Load configuration from ``path`` or the standard location.

    An explicit path must exist. Without one, ./mealy.yaml is read when
    present and defaults are used otherwise.

    Args:
        path: Configuration file

    Returns:
        Result with loaded config or error
    """
    if path is not None:
        return MealyConfig.from_yaml(Path(path))

    default_path = Path(DEFAULT_CONFIG_FILE)
    if default_path.exists():
        return MealyConfig.from_yaml(default_path)

    return Ok(MealyConfig())
