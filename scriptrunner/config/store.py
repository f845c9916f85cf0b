"""
Scoped key-value configuration store.

Values live in two YAML documents: a global one under the runner's home
directory and an optional workspace one. Reads prefer the workspace layer.
Every write re-reads the file it touches, so concurrent editors never lose
each other's keys.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml


logger = logging.getLogger(__name__)

_MISSING = object()


class ConfigScope(str, Enum):
    GLOBAL = "global"
    WORKSPACE = "workspace"


class ConfigStoreError(Exception):
    """Error reading or writing a configuration file."""

    def __init__(self, message: str, file_path: str | None = None) -> None:
        self.file_path = file_path
        location = f" in {file_path}" if file_path else ""
        super().__init__(f"{message}{location}")


@dataclass
class ConfigInspection:
    """Per-scope view of a single key."""

    key: str
    global_value: Any = None
    workspace_value: Any = None

    @property
    def effective_value(self) -> Any:
        if self.workspace_value is not None:
            return self.workspace_value
        return self.global_value


class ConfigStore:
    """YAML-backed configuration with global and workspace layers."""

    def __init__(self, global_path: Path, workspace_path: Path | None = None) -> None:
        self.global_path = Path(global_path)
        self.workspace_path = Path(workspace_path) if workspace_path else None
        self._lock = threading.RLock()

    def _path_for(self, scope: ConfigScope) -> Path | None:
        if scope == ConfigScope.GLOBAL:
            return self.global_path
        return self.workspace_path

    def _read(self, path: Path | None) -> dict[str, Any]:
        if path is None or not path.exists():
            return {}
        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigStoreError(f"YAML parse error: {e}", str(path)) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigStoreError("Configuration root must be a mapping", str(path))
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote configuration to {path}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get the effective value of a key, workspace layer first."""
        with self._lock:
            value = self.inspect(key).effective_value
        return default if value is None else value

    def inspect(self, key: str) -> ConfigInspection:
        with self._lock:
            return ConfigInspection(
                key=key,
                global_value=self._read(self.global_path).get(key),
                workspace_value=self._read(self.workspace_path).get(key),
            )

    def set(self, key: str, value: Any, scope: ConfigScope = ConfigScope.GLOBAL) -> None:
        """Set a key in one scope. A value of ``None`` removes the key."""
        path = self._path_for(scope)
        if path is None:
            raise ConfigStoreError(f"No file configured for {scope.value} scope")

        with self._lock:
            data = self._read(path)
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            self._write(path, data)

    def update(
        self,
        key: str,
        fn: Callable[[Any], Any],
        scope: ConfigScope = ConfigScope.GLOBAL,
        default: Any = None,
    ) -> Any:
        """Atomically read the latest value of ``key``, transform it, write it back.

        Returns the value that was written.
        """
        path = self._path_for(scope)
        if path is None:
            raise ConfigStoreError(f"No file configured for {scope.value} scope")

        with self._lock:
            data = self._read(path)
            current = data.get(key, _MISSING)
            new_value = fn(default if current is _MISSING else current)
            if new_value is None:
                data.pop(key, None)
            else:
                data[key] = new_value
            self._write(path, data)
            return new_value

    def get_global(self, key: str, default: Any = None) -> Any:
        """Get the global value of a key, ignoring workspace overrides."""
        value = self.inspect(key).global_value
        return default if value is None else value

    def update_global(self, key: str, value: Any) -> None:
        """Write a global value, clearing any workspace override first."""
        with self._lock:
            if self.workspace_path is not None and self.inspect(key).workspace_value is not None:
                self.set(key, None, ConfigScope.WORKSPACE)
            self.set(key, value, ConfigScope.GLOBAL)
