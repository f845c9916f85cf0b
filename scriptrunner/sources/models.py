"""
Script source models.

A source is either a git repository synced into a local working copy or a
local directory used in place. Records are persisted in camelCase under the
``sources`` configuration key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator


logger = logging.getLogger(__name__)

DEFAULT_SCRIPTS_PATH = "scripts"


class _SourceBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(default="", description="Display label, unique within the registry")
    enabled: bool = Field(default=True, description="Disabled sources are skipped")
    built_in: bool = Field(
        default=False, alias="builtIn", description="Bundled source that cannot be removed"
    )
    is_workspace: bool = Field(
        default=False,
        alias="isWorkspace",
        description="Derived from an open workspace folder",
    )

    def to_config(self) -> dict[str, Any]:
        """Serialize for the configuration store."""
        return self.model_dump(by_alias=True, exclude_none=True)


class GitSource(_SourceBase):
    """A git repository contributing scripts."""

    type: Literal["git"] = "git"
    url: str = Field(..., min_length=1, description="Repository URL")
    branch: str | None = Field(default=None, description="Branch to check out")
    scripts_path: str = Field(
        default=DEFAULT_SCRIPTS_PATH,
        alias="scriptsPath",
        description="Scripts directory relative to the working copy",
    )

    @model_validator(mode="after")
    def default_name(self) -> GitSource:
        if not self.name:
            tail = self.url.rstrip("/").split("/")[-1]
            self.name = tail.removesuffix(".git") or self.url
        return self


class LocalSource(_SourceBase):
    """A local directory contributing scripts."""

    type: Literal["local"] = "local"
    path: str = Field(..., min_length=1, description="Absolute path to the scripts directory")

    @model_validator(mode="after")
    def default_name(self) -> LocalSource:
        if not self.name:
            self.name = Path(self.path).name or self.path
        return self

    @property
    def resolved_path(self) -> Path:
        return Path(self.path).expanduser()


SourceConfig = Annotated[GitSource | LocalSource, Field(discriminator="type")]

_source_adapter: TypeAdapter[GitSource | LocalSource] = TypeAdapter(SourceConfig)


def parse_source(data: dict[str, Any]) -> GitSource | LocalSource:
    """Parse a single persisted source record.

    Raises:
        ValidationError: If the record is malformed
    """
    return _source_adapter.validate_python(data)


def parse_sources(records: list[dict[str, Any]] | None) -> list[GitSource | LocalSource]:
    """Parse persisted source records, skipping malformed ones."""
    sources: list[GitSource | LocalSource] = []
    for index, record in enumerate(records or []):
        try:
            sources.append(parse_source(record))
        except ValidationError as e:
            logger.warning(f"Ignoring invalid source record #{index}: {e}")
    return sources


@dataclass(frozen=True)
class ResolvedSource:
    """Concrete on-disk location of an enabled source."""

    scripts_root: Path
    source_name: str
    source_base_path: Path
