"""Configuration store and runtime settings."""

from .settings import BUILTIN_SCRIPTS_PATH, BUILTIN_SOURCE_NAME, RunnerSettings
from .store import ConfigInspection, ConfigScope, ConfigStore, ConfigStoreError


__all__ = [
    "BUILTIN_SCRIPTS_PATH",
    "BUILTIN_SOURCE_NAME",
    "ConfigInspection",
    "ConfigScope",
    "ConfigStore",
    "ConfigStoreError",
    "RunnerSettings",
]
