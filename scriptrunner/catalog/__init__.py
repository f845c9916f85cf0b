"""
Script catalog: manifest models, manifest readers, the catalog loader, and
script authoring.

Usage:
    from scriptrunner.catalog import CatalogLoader

    catalog = CatalogLoader().load(registry.list_enabled_sources())
    for script in catalog.sorted_scripts():
        print(script.source_name, script.name)
"""

from .authoring import PlatformDraft, ScriptAuthoringError, ScriptDraft, add_script_to_source
from .loader import Catalog, CatalogLoader, LoadIssue, load_catalog
from .manifest import (
    CONSOLIDATED_MANIFEST,
    PER_SCRIPT_MANIFEST,
    ConsolidatedManifestReader,
    ManifestReader,
    ManifestRecord,
    PerScriptManifestReader,
    read_manifest,
)
from .models import (
    ExitSettings,
    FileVariant,
    HostPlatform,
    InlineVariant,
    ParameterSpec,
    PlatformVariant,
    Script,
    ScriptManifestEntry,
    TerminalSettings,
    current_platform,
)


__all__ = [
    # Models
    "ExitSettings",
    "FileVariant",
    "HostPlatform",
    "InlineVariant",
    "ParameterSpec",
    "PlatformVariant",
    "Script",
    "ScriptManifestEntry",
    "TerminalSettings",
    "current_platform",
    # Manifests
    "CONSOLIDATED_MANIFEST",
    "PER_SCRIPT_MANIFEST",
    "ConsolidatedManifestReader",
    "ManifestReader",
    "ManifestRecord",
    "PerScriptManifestReader",
    "read_manifest",
    # Loader
    "Catalog",
    "CatalogLoader",
    "LoadIssue",
    "load_catalog",
    # Authoring
    "PlatformDraft",
    "ScriptAuthoringError",
    "ScriptDraft",
    "add_script_to_source",
]
