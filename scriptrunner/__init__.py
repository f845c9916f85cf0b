"""
scriptrunner

Catalogs scripts contributed by git repositories and local directories,
resolves the variant for the host platform, and synthesizes the shell command
that runs it in a terminal session.

Usage:
    from scriptrunner import create_runner

    runner = create_runner()
    await runner.refresh()
    for script in runner.catalog.sorted_scripts():
        print(script.name)
"""

from .errors import (
    BuiltInSourceError,
    ConfigurationError,
    DuplicateSourceError,
    ExecutionError,
    ManifestError,
    MissingParameterError,
    NoInterpreterConfiguredError,
    NoSourcesConfiguredError,
    RunnerDisabledError,
    ScriptRunnerError,
    SourceNotFoundError,
    SourceSyncError,
    SourceValidationError,
)
from .runner import ExecutionOutcome, ParameterCollector, ScriptRunner, create_runner


__version__ = "0.4.0"

__all__ = [
    # Runner
    "ExecutionOutcome",
    "ParameterCollector",
    "ScriptRunner",
    "create_runner",
    # Errors
    "BuiltInSourceError",
    "ConfigurationError",
    "DuplicateSourceError",
    "ExecutionError",
    "ManifestError",
    "MissingParameterError",
    "NoInterpreterConfiguredError",
    "NoSourcesConfiguredError",
    "RunnerDisabledError",
    "ScriptRunnerError",
    "SourceNotFoundError",
    "SourceSyncError",
    "SourceValidationError",
]
