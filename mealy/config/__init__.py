"""Configuration module for mealy."""

from mealy.config.settings import EngineConfig, LoggingConfig, MealyConfig, load_config

__all__ = ["EngineConfig", "LoggingConfig", "MealyConfig", "load_config"]
