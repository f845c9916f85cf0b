"""
Script authoring.

Adds new scripts to a local source: the manifest entry is written in the
layout the source already uses, and file-backed script bodies are written next
to it.
"""

from __future__ import annotations

import json
import logging
import re
import stat
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from scriptrunner.errors import ManifestError, ScriptRunnerError

from .manifest import (
    CONSOLIDATED_MANIFEST,
    PER_SCRIPT_MANIFEST,
    ConsolidatedManifestReader,
    PerScriptManifestReader,
)
from .models import HostPlatform, ParameterSpec, ScriptManifestEntry, TerminalSettings


logger = logging.getLogger(__name__)


class ScriptAuthoringError(ScriptRunnerError):
    """A new script cannot be written to the source."""


class PlatformDraft(BaseModel):
    """How one platform runs the new script."""

    type: Literal["file", "inline"]
    content: str = Field(..., min_length=1, description="Relative file path, or the inline command")
    body: str | None = Field(default=None, description="File contents for file-backed scripts")


class ScriptDraft(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    platforms: dict[HostPlatform, PlatformDraft] = Field(default_factory=dict)
    parameters: list[ParameterSpec] = Field(default_factory=list)
    terminal: TerminalSettings = Field(default_factory=TerminalSettings)


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", name).strip("-").lower()
    return slug or "script"


def _inside(root: Path, candidate: Path) -> bool:
    try:
        candidate.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _write_script_file(path: Path, body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP)


def add_script_to_source(root: Path, draft: ScriptDraft) -> Path:
    """Write a new script into the source rooted at ``root``.

    Sources using per-script ``script.json`` files get a new folder; all other
    sources get the entry appended to their consolidated ``scripts.json``.

    Returns:
        Path of the manifest file that now declares the script

    Raises:
        ScriptAuthoringError: If the name is taken, a path escapes the source
            root, a script file already exists, or the manifest is unreadable
    """
    root = Path(root)
    if not root.is_dir():
        raise ScriptAuthoringError(f"Source directory does not exist: {root}")
    if not draft.platforms:
        raise ScriptAuthoringError("At least one platform must be configured")

    consolidated = ConsolidatedManifestReader()
    per_script = PerScriptManifestReader()
    use_per_script = not consolidated.applies_to(root) and per_script.applies_to(root)

    if use_per_script:
        existing = [record.data for record in per_script.read(root)]
        base_dir = root / _slugify(draft.name)
        if base_dir.exists():
            raise ScriptAuthoringError(f"Folder already exists: {base_dir}")
    else:
        existing = []
        if consolidated.applies_to(root):
            try:
                existing = [record.data for record in consolidated.read(root)]
            except ManifestError as e:
                raise ScriptAuthoringError(f"Cannot update manifest: {e}") from e
        base_dir = root

    if any(isinstance(entry, dict) and entry.get("name") == draft.name for entry in existing):
        raise ScriptAuthoringError(f"A script named '{draft.name}' already exists in {root}")

    platforms: dict[str, list[str] | str] = {}
    files: list[tuple[Path, str]] = []
    for platform, spec in draft.platforms.items():
        if spec.type == "inline":
            platforms[platform.value] = spec.content
            continue
        target = base_dir / spec.content
        if not _inside(root, target):
            raise ScriptAuthoringError(f"Script path escapes the source: {spec.content}")
        if target.exists() and spec.body is not None:
            raise ScriptAuthoringError(f"Script file already exists: {target}")
        platforms[platform.value] = [spec.content]
        if spec.body is not None:
            files.append((target, spec.body))

    entry = ScriptManifestEntry(
        name=draft.name,
        description=draft.description,
        category=draft.category,
        tags=draft.tags,
        platforms=platforms,
        parameters=draft.parameters,
        terminal=draft.terminal,
    ).model_dump(by_alias=True, exclude_none=True)

    for target, body in files:
        _write_script_file(target, body)

    if use_per_script:
        manifest_path = base_dir / PER_SCRIPT_MANIFEST
        base_dir.mkdir(parents=True, exist_ok=True)
        document: object = entry
    else:
        manifest_path = root / CONSOLIDATED_MANIFEST
        document = [*existing, entry]

    manifest_path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    logger.info(f"Added script {draft.name} to {manifest_path}")
    return manifest_path
