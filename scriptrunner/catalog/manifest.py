"""
Manifest readers.

Two layouts are supported and both produce the same ``ManifestRecord`` list:

- consolidated: one ``scripts.json`` at the scripts root listing every entry
  (a JSON array, or an object with a ``scripts`` array)
- per-script: a ``script.json`` in each script's own folder, anywhere below
  the scripts root

Relative script paths in a record resolve against the record's ``base_dir``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from scriptrunner.errors import ManifestError


logger = logging.getLogger(__name__)

CONSOLIDATED_MANIFEST = "scripts.json"
PER_SCRIPT_MANIFEST = "script.json"


@dataclass(frozen=True)
class ManifestRecord:
    """A raw manifest entry and the directory its paths are relative to."""

    base_dir: Path
    data: Any
    origin: Path
    error: str | None = None


class ManifestReader(Protocol):
    def applies_to(self, root: Path) -> bool: ...

    def read(self, root: Path) -> list[ManifestRecord]: ...


def _load_json(path: Path) -> Any:
    try:
        with path.open(encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ManifestError(f"JSON parse error at line {e.lineno}: {e.msg}", str(path)) from e
    except UnicodeDecodeError as e:
        raise ManifestError(f"Manifest is not valid UTF-8: {e.reason}", str(path)) from e
    except OSError as e:
        raise ManifestError(f"Cannot read manifest: {e}", str(path)) from e


class ConsolidatedManifestReader:
    filename = CONSOLIDATED_MANIFEST

    def applies_to(self, root: Path) -> bool:
        return (root / self.filename).is_file()

    def read(self, root: Path) -> list[ManifestRecord]:
        path = root / self.filename
        data = _load_json(path)

        if isinstance(data, dict) and "scripts" in data:
            data = data["scripts"]
        if not isinstance(data, list):
            raise ManifestError("Manifest must be a list of scripts", str(path))

        return [ManifestRecord(base_dir=root, data=entry, origin=path) for entry in data]


class PerScriptManifestReader:
    """Walks the scripts root for ``script.json`` files.

    A corrupt ``script.json`` only drops that one entry; it is returned as a
    record carrying ``error`` so the loader can report it.
    """

    filename = PER_SCRIPT_MANIFEST

    def applies_to(self, root: Path) -> bool:
        return any(self._manifest_paths(root))

    def _manifest_paths(self, root: Path):
        return (p for p in sorted(root.rglob(self.filename)) if p.is_file())

    def read(self, root: Path) -> list[ManifestRecord]:
        records: list[ManifestRecord] = []
        for path in self._manifest_paths(root):
            try:
                data = _load_json(path)
            except ManifestError as e:
                logger.warning(f"Skipping script manifest: {e}")
                records.append(
                    ManifestRecord(base_dir=path.parent, data=None, origin=path, error=str(e))
                )
                continue
            records.append(ManifestRecord(base_dir=path.parent, data=data, origin=path))
        return records


DEFAULT_READERS: tuple[ManifestReader, ...] = (
    ConsolidatedManifestReader(),
    PerScriptManifestReader(),
)


def read_manifest(
    root: Path, readers: tuple[ManifestReader, ...] = DEFAULT_READERS
) -> list[ManifestRecord]:
    """Read the manifest of a scripts root using the first applicable layout.

    Raises:
        ManifestError: If the root is missing, has no manifest, or the
            manifest cannot be parsed
    """
    if not root.is_dir():
        raise ManifestError("Scripts root does not exist", str(root))

    for reader in readers:
        if reader.applies_to(root):
            return reader.read(root)

    raise ManifestError("No manifest found", str(root))
