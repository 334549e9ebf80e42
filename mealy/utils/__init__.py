"""Utility modules for mealy."""

from mealy.utils.logging import configure_logging, get_logger, new_run_id
from mealy.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    Ok,
    Result,
    ResultError,
    TableError,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "new_run_id",
    # Result
    "Ok",
    "Err",
    "Result",
    "ResultError",
    "ConfigError",
    "TableError",
    "ExitCode",
]
