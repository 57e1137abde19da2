"""Foundation domain - config, errors and logging shared by every layer."""

from flowkeeper.foundation.config import (
    FlowConfig,
    FlowkeeperConfig,
    get_config,
    load_config,
    reset_config,
)
from flowkeeper.foundation.errors import (
    CommandFailed,
    ErrorCode,
    FlowkeeperError,
    WorkerUnavailable,
    config_error,
)
from flowkeeper.foundation.logging import configure_logging

__all__ = [
    # Config
    "FlowConfig",
    "FlowkeeperConfig",
    "get_config",
    "load_config",
    "reset_config",
    # Errors
    "CommandFailed",
    "ErrorCode",
    "FlowkeeperError",
    "WorkerUnavailable",
    "config_error",
    # Logging
    "configure_logging",
]
