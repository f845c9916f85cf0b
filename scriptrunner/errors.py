"""Exception hierarchy for the script runner.

Configuration errors are surfaced to callers so a UI can offer a remediation
action. Partial-load problems never escape the catalog loader. Execution errors
are fatal for a single execution attempt only.
"""

from __future__ import annotations


class ScriptRunnerError(Exception):
    """Base class for all script runner errors."""


class ConfigurationError(ScriptRunnerError):
    """The configured sources or settings cannot be used as they are."""

    remediation: str | None = None


class NoSourcesConfiguredError(ConfigurationError):
    """Raised when a sync is requested on an empty source registry."""

    remediation = "Add a script source with `scriptrunner sources add-git` or `add-local`."

    def __init__(self) -> None:
        super().__init__("No script sources configured")


class SourceValidationError(ConfigurationError):
    """A source was rejected before being persisted."""

    remediation = "Check the repository URL or directory path and try again."

    def __init__(self, source_name: str, reason: str) -> None:
        self.source_name = source_name
        self.reason = reason
        super().__init__(f"Invalid source '{source_name}': {reason}")


class DuplicateSourceError(SourceValidationError):
    def __init__(self, source_name: str) -> None:
        super().__init__(source_name, "a source with this name already exists")


class SourceNotFoundError(ConfigurationError):
    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        super().__init__(f"Source not found: {source_name}")


class BuiltInSourceError(ConfigurationError):
    """Built-in sources can be toggled but never removed."""

    remediation = "Disable the built-in source instead of removing it."

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        super().__init__(f"Built-in source '{source_name}' cannot be removed")


class RunnerDisabledError(ConfigurationError):
    remediation = "Enable the runner with `scriptrunner enable`."

    def __init__(self) -> None:
        super().__init__("Script runner is disabled")


class SourceSyncError(ScriptRunnerError):
    """Syncing a git source failed for a reason other than a missing branch."""

    def __init__(self, source_name: str, cause: Exception) -> None:
        self.source_name = source_name
        self.cause = cause
        super().__init__(f"Failed to sync source '{source_name}': {cause}")


class ManifestError(ScriptRunnerError):
    """A manifest file is missing or cannot be parsed."""

    def __init__(self, message: str, file_path: str | None = None) -> None:
        self.file_path = file_path
        location = f" in {file_path}" if file_path else ""
        super().__init__(f"{message}{location}")


class ExecutionError(ScriptRunnerError):
    """A single execution attempt cannot proceed."""


class NoInterpreterConfiguredError(ExecutionError):
    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        super().__init__(f"No interpreter configured for '{file_name}'")


class MissingParameterError(ExecutionError):
    def __init__(self, parameter_name: str) -> None:
        self.parameter_name = parameter_name
        super().__init__(f"Required parameter '{parameter_name}' not provided")
