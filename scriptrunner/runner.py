"""
Execution Orchestrator

Composes the source registry, catalog loader, command synthesizer, and
terminal session policy:

    refresh:  sync sources -> load catalog -> swap snapshot
    execute:  acquire session -> collect parameters -> synthesize -> dispatch

Usage:
    runner = create_runner()
    await runner.refresh()
    script = runner.catalog.find("Disk usage")[0]
    await runner.execute_script(script, {"path": "/var/log"})
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum

from scriptrunner.catalog import (
    Catalog,
    CatalogLoader,
    HostPlatform,
    ParameterSpec,
    Script,
    current_platform,
)
from scriptrunner.config import ConfigStore, RunnerSettings
from scriptrunner.errors import RunnerDisabledError
from scriptrunner.execution import (
    CommandSynthesizer,
    FilePatternStore,
    ShellTerminal,
    TerminalFactory,
    TerminalSessionPolicy,
)
from scriptrunner.execution.synthesizer import ParamValue
from scriptrunner.pins import PinStore
from scriptrunner.sources import GitCliSyncer, RepositorySyncer, SourceRegistry, SyncResult


logger = logging.getLogger(__name__)

ENABLED_KEY = "enabled"

ParameterCollector = Callable[
    [list[ParameterSpec]], Awaitable[Mapping[str, ParamValue] | None]
]


class ExecutionOutcome(str, Enum):
    DISPATCHED = "dispatched"
    CANCELLED = "cancelled"  # User cancelled parameter collection


class ScriptRunner:
    """Script-dispatch engine: registry, catalog, synthesizer, and terminal policy."""

    def __init__(
        self,
        store: ConfigStore,
        registry: SourceRegistry,
        loader: CatalogLoader,
        synthesizer: CommandSynthesizer,
        policy: TerminalSessionPolicy,
    ) -> None:
        self.store = store
        self.registry = registry
        self.loader = loader
        self.synthesizer = synthesizer
        self.policy = policy
        self.file_patterns = FilePatternStore(store)
        self.pins = PinStore(store)

        self._catalog = Catalog()
        self.last_sync: list[SyncResult] = []
        self._refresh_lock = asyncio.Lock()
        self._pending: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Enable switch
    # -------------------------------------------------------------------------

    def is_enabled(self) -> bool:
        return bool(self.store.get(ENABLED_KEY, True))

    def set_enabled(self, enabled: bool) -> None:
        self.store.update_global(ENABLED_KEY, enabled)
        logger.info(f"Script runner {'enabled' if enabled else 'disabled'}")

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def refresh(self, sync: bool = True) -> Catalog:
        """Rebuild the catalog, optionally resyncing git sources first.

        Refreshes are serialized. The previous snapshot stays visible until the
        new one is fully loaded, and stays in place if syncing fails.

        Raises:
            RunnerDisabledError: If the runner is disabled
            NoSourcesConfiguredError: If syncing with no sources configured
            SourceSyncError: If a git source fails to sync
        """
        if not self.is_enabled():
            raise RunnerDisabledError()

        async with self._refresh_lock:
            if sync:
                self.last_sync = await self.registry.sync_all()
            else:
                self.registry.reload()

            sources = self.registry.list_enabled_sources()
            catalog = await asyncio.to_thread(self.loader.load, sources)
            self._catalog = catalog

        for issue in catalog.issues:
            logger.debug(f"Catalog issue: {issue}")
        return catalog

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def get_catalog(self) -> list[Script]:
        return list(self._catalog.scripts)

    def get_all_tags(self) -> list[str]:
        return self._catalog.tags()

    def get_all_categories(self) -> list[str]:
        return self._catalog.categories()

    def get_all_sources(self) -> list[str]:
        return self._catalog.source_names()

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_script(
        self,
        script: Script,
        params: Mapping[str, ParamValue] | None = None,
        collector: ParameterCollector | None = None,
    ) -> ExecutionOutcome:
        """Dispatch a script to a terminal session without waiting for it to finish.

        ``collector`` is awaited for parameter values when the script declares
        parameters; returning None means the user cancelled, and nothing is
        dispatched. Values it returns override ``params``.

        Raises:
            MissingParameterError: If a required parameter has no value
            NoInterpreterConfiguredError: If no file pattern matches the script
        """
        terminal = script.metadata.terminal
        lease = self.policy.acquire(terminal, script.name)

        try:
            values: dict[str, ParamValue] = dict(params or {})
            if collector is not None and script.metadata.parameters:
                collected = await collector(list(script.metadata.parameters))
                if collected is None:
                    logger.info(f"Execution of {script.name} cancelled")
                    self.policy.cancel(lease)
                    return ExecutionOutcome.CANCELLED
                values.update(collected)

            command = self.synthesizer.synthesize(
                script, values, self.file_patterns.load(), close_allowed=lease.created
            )
            lease.session.show()
            lease.session.send_text(command)
        except (Exception, asyncio.CancelledError):
            self.policy.cancel(lease)
            raise

        task = asyncio.create_task(self.policy.complete(lease, terminal.on_exit))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        logger.info(f"Dispatched {script.name} to terminal {lease.session.name}")
        return ExecutionOutcome.DISPATCHED

    async def wait_for_pending(self) -> None:
        """Wait for scheduled terminal teardowns."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Pins
    # -------------------------------------------------------------------------

    def toggle_pin(self, script: Script) -> bool:
        return self.pins.toggle(script)

    def is_pinned(self, script: Script) -> bool:
        return self.pins.is_pinned(script)

    def pinned_scripts(self) -> list[Script]:
        pinned = set(self.pins.pinned_ids())
        return [s for s in self._catalog.scripts if s.pin_id in pinned]


def create_runner(
    settings: RunnerSettings | None = None,
    syncer: RepositorySyncer | None = None,
    terminal_factory: TerminalFactory | None = None,
    platform: HostPlatform | None = None,
) -> ScriptRunner:
    """Wire a runner with default collaborators and register the built-in source."""
    settings = settings or RunnerSettings()
    platform = platform or current_platform()

    store = ConfigStore(settings.global_config_path, settings.workspace_config_path)
    syncer = syncer or GitCliSyncer(retries=settings.git_retries, timeout=settings.git_timeout)
    registry = SourceRegistry(store, syncer, settings.repos_path)
    registry.ensure_builtin_source(settings.builtin_scripts_path)
    if settings.workspace is not None:
        registry.reconcile_workspace_folders([settings.workspace])

    factory = terminal_factory or (lambda name: ShellTerminal(name, platform))
    return ScriptRunner(
        store=store,
        registry=registry,
        loader=CatalogLoader(platform),
        synthesizer=CommandSynthesizer(platform),
        policy=TerminalSessionPolicy(factory, close_delay=settings.close_delay),
    )
