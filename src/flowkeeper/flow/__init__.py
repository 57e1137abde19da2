"""Flow server supervision.

Finds the flow root for a file, starts `flow server` on demand, retries
commands while the server comes up, and stops talking to roots whose server
crashed.

Core Components:
- RootResolver: file -> flow root and execution options
- RootHealthTracker: roots blacklisted after a server crash
- WorkerRegistry: servers started by this process, killed on teardown
- CommandExecutor: run, spawn-on-absence, bounded retry
- FlowService: definition, diagnostics, autocomplete and type-at-pos

Example:
    from flowkeeper.flow import FlowService

    async with FlowService() as flow:
        type_string = await flow.get_type("src/app.js", buffer, 10, 4)
"""

from flowkeeper.flow.executor import CommandExecutor
from flowkeeper.flow.health import CrashPolicy, RootHealthTracker
from flowkeeper.flow.helpers import (
    RootResolver,
    build_execution_options,
    find_config_root,
    find_nearest_file,
    insert_autocomplete_token,
    locate_worker_binary,
)
from flowkeeper.flow.process import ProcessError, run_process, spawn_process
from flowkeeper.flow.registry import WorkerHandle, WorkerRegistry
from flowkeeper.flow.requests import (
    AutocompleteRequest,
    DefinitionRequest,
    DiagnosticsRequest,
    FlowRequest,
    TypeAtPositionRequest,
)
from flowkeeper.flow.service import FlowService
from flowkeeper.flow.types import (
    Completion,
    Diagnostic,
    DiagnosticMessage,
    ExecutionOptions,
    ExitStatus,
    Location,
    ProcessResult,
    RequestKind,
    RootHealth,
)

__all__ = [
    # Types
    "Completion",
    "Diagnostic",
    "DiagnosticMessage",
    "ExecutionOptions",
    "ExitStatus",
    "Location",
    "ProcessResult",
    "RequestKind",
    "RootHealth",
    # Requests
    "AutocompleteRequest",
    "DefinitionRequest",
    "DiagnosticsRequest",
    "FlowRequest",
    "TypeAtPositionRequest",
    # Components
    "CommandExecutor",
    "CrashPolicy",
    "FlowService",
    "RootHealthTracker",
    "RootResolver",
    "WorkerHandle",
    "WorkerRegistry",
    # Utilities
    "ProcessError",
    "build_execution_options",
    "find_config_root",
    "find_nearest_file",
    "insert_autocomplete_token",
    "locate_worker_binary",
    "run_process",
    "spawn_process",
]
