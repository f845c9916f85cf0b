"""
Catalog Models

Pydantic models for manifest entries and the resolved, platform-specific
Script records built from them.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HostPlatform(str, Enum):
    """Platform keys used in manifest ``platforms`` maps."""

    WINDOWS = "windows"
    LINUX = "linux"
    DARWIN = "darwin"

    @property
    def is_windows(self) -> bool:
        return self is HostPlatform.WINDOWS


def current_platform() -> HostPlatform:
    """Map the running interpreter's platform to a manifest key (linux by default)."""
    if sys.platform.startswith("win"):
        return HostPlatform.WINDOWS
    if sys.platform == "darwin":
        return HostPlatform.DARWIN
    return HostPlatform.LINUX


class ParameterSpec(BaseModel):
    """A parameter declared by a script."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, description="Parameter name, used for placeholders")
    description: str = Field(default="", description="Help text shown when collecting input")
    type: Literal["text", "select", "boolean"] = Field(default="text")
    options: list[str] = Field(default_factory=list, description="Choices for 'select'")
    default: str | bool | None = Field(default=None)
    required: bool = Field(default=False)

    def default_as_string(self) -> str | None:
        """Default value as command-line text, booleans as 'true'/'false'."""
        if self.default is None:
            return None
        if isinstance(self.default, bool):
            return "true" if self.default else "false"
        return self.default


class ExitSettings(BaseModel):
    refresh: bool = False
    clear: bool = False
    close: bool = False


class TerminalSettings(BaseModel):
    """Terminal behaviour requested by a script."""

    model_config = ConfigDict(populate_by_name=True)

    new: bool = Field(default=False, description="Always open a fresh terminal")
    on_exit: ExitSettings = Field(default_factory=ExitSettings, alias="onExit")


@dataclass(frozen=True)
class InlineVariant:
    """The whole script body is given in the manifest."""

    command: str


@dataclass(frozen=True)
class FileVariant:
    """The script lives in a file; the first relative path is authoritative."""

    relative_paths: tuple[str, ...]

    @property
    def primary(self) -> str:
        return self.relative_paths[0]


PlatformVariant = InlineVariant | FileVariant


class ScriptManifestEntry(BaseModel):
    """One script declared in a source manifest."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    platforms: dict[str, list[str] | str] = Field(default_factory=dict)
    parameters: list[ParameterSpec] = Field(default_factory=list)
    terminal: TerminalSettings = Field(default_factory=TerminalSettings)

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(tag for tag in v if tag))

    def variant_for(self, platform: HostPlatform) -> PlatformVariant | None:
        """Resolve the ``platforms`` value for a host, or None when unsupported."""
        value = self.platforms.get(platform.value)
        if value is None:
            return None
        if isinstance(value, str):
            return InlineVariant(command=value) if value.strip() else None
        paths = tuple(p for p in value if p)
        return FileVariant(relative_paths=paths) if paths else None


@dataclass(frozen=True)
class Script:
    """A manifest entry specialized to the current host platform.

    ``path`` is the script file for file-backed scripts and the manifest's
    directory for inline ones.
    """

    metadata: ScriptManifestEntry
    path: Path
    source_name: str
    source_path: Path
    inline_script: str | None = None

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def is_inline(self) -> bool:
        return self.inline_script is not None

    @property
    def directory(self) -> Path:
        return self.path if self.is_inline else self.path.parent

    @property
    def pin_id(self) -> str:
        """Identity that survives catalog reloads."""
        return f"{self.source_name}:{self.path}"

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.source_name, str(self.path), self.metadata.name)
