"""Flowkeeper - flow server supervision for editor features.

Starts and supervises `flow server` processes per project root and answers
jump-to-definition, diagnostics, autocomplete and type-at-cursor requests.
"""

from flowkeeper.flow import (
    Completion,
    Diagnostic,
    FlowService,
    Location,
)
from flowkeeper.foundation.errors import CommandFailed, ErrorCode, FlowkeeperError, WorkerUnavailable

__version__ = "0.1.0"

__all__ = [
    "CommandFailed",
    "Completion",
    "Diagnostic",
    "ErrorCode",
    "FlowService",
    "FlowkeeperError",
    "Location",
    "WorkerUnavailable",
    "__version__",
]
