"""Utility modules for babble."""

from babble.utils.errors import BabbleError, ContextLengthError, StoreError
from babble.utils.logging import (
    configure_logging,
    get_logger,
    new_run_id,
    set_run_context,
    set_stage,
)
from babble.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    FetchError,
    Ok,
    Result,
    ResultError,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "new_run_id",
    "set_run_context",
    "set_stage",
    # Errors
    "BabbleError",
    "StoreError",
    "ContextLengthError",
    # Result
    "Ok",
    "Err",
    "Result",
    "ResultError",
    "FetchError",
    "ConfigError",
    "ExitCode",
]
