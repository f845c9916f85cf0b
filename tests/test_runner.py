import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeSyncer, write_manifest, write_script
from scriptrunner import ExecutionOutcome, create_runner
from scriptrunner.catalog import HostPlatform, Script, ScriptManifestEntry
from scriptrunner.config import RunnerSettings
from scriptrunner.errors import (
    MissingParameterError,
    NoInterpreterConfiguredError,
    NoSourcesConfiguredError,
    RunnerDisabledError,
)


@pytest.fixture
def builtin(tmp_path):
    root = tmp_path / "builtin"
    write_script(root / "hello.sh")
    write_script(root / "tool.rb")
    write_manifest(
        root,
        [
            {
                "name": "Hello",
                "description": "Say hello",
                "category": "Examples",
                "tags": ["example"],
                "platforms": {"linux": ["hello.sh"]},
                "parameters": [{"name": "who", "default": "world"}],
            },
            {
                "name": "Greet",
                "description": "Greet someone",
                "tags": ["example", "inline"],
                "platforms": {"linux": "echo {who}"},
                "parameters": [{"name": "who", "required": True}],
                "terminal": {"new": True, "onExit": {"close": True}},
            },
            {
                "name": "Ruby",
                "description": "No interpreter",
                "platforms": {"linux": ["tool.rb"]},
                "terminal": {"new": True},
            },
        ],
    )
    return root


@pytest.fixture
def runner(tmp_path, builtin, terminals):
    settings = RunnerSettings(
        home=tmp_path / "home", close_delay=0, builtin_scripts_path=builtin
    )
    return create_runner(
        settings, syncer=FakeSyncer(), terminal_factory=terminals, platform=HostPlatform.LINUX
    )


@pytest.mark.asyncio
async def test_refresh_loads_builtin_source(runner):
    catalog = await runner.refresh()

    assert {s.name for s in catalog} == {"Hello", "Greet", "Ruby"}
    assert runner.get_all_sources() == ["Built-in Scripts"]
    assert runner.get_all_tags() == ["example", "inline"]
    assert runner.get_all_categories() == ["Examples"]
    assert len(runner.get_catalog()) == 3


@pytest.mark.asyncio
async def test_refresh_when_disabled(runner):
    runner.set_enabled(False)

    with pytest.raises(RunnerDisabledError):
        await runner.refresh()

    runner.set_enabled(True)
    assert len(await runner.refresh()) == 3


@pytest.mark.asyncio
async def test_failed_sync_keeps_previous_catalog(runner):
    await runner.refresh()

    with patch.object(
        runner.registry, "sync_all", AsyncMock(side_effect=NoSourcesConfiguredError())
    ):
        with pytest.raises(NoSourcesConfiguredError):
            await runner.refresh()

    assert len(runner.catalog) == 3


@pytest.mark.asyncio
async def test_concurrent_refreshes_are_serialized(runner):
    active = 0
    overlap = False
    original = runner.loader.load

    def slow_load(sources):
        nonlocal active, overlap
        active += 1
        overlap = overlap or active > 1
        try:
            return original(sources)
        finally:
            active -= 1

    with patch.object(runner.loader, "load", side_effect=slow_load):
        await asyncio.gather(runner.refresh(sync=False), runner.refresh(sync=False))

    assert overlap is False


@pytest.mark.asyncio
async def test_execute_file_script(runner, terminals, builtin):
    await runner.refresh()
    (script,) = runner.catalog.find("Hello")

    outcome = await runner.execute_script(script)
    await runner.wait_for_pending()

    assert outcome == ExecutionOutcome.DISPATCHED
    (terminal,) = terminals.created
    assert terminal.shown == 1
    (command,) = terminal.sent
    assert command.endswith(f'bash "{builtin / "hello.sh"}" world')
    assert 'export SCRIPTS_RUNNER_SOURCE_NAME="Built-in Scripts"; ' in command
    assert terminal.disposed is False


@pytest.mark.asyncio
async def test_collector_values_and_close_on_exit(runner, terminals):
    await runner.refresh()
    (script,) = runner.catalog.find("Greet")
    collector = AsyncMock(return_value={"who": "the team"})

    outcome = await runner.execute_script(script, collector=collector)
    await runner.wait_for_pending()

    assert outcome == ExecutionOutcome.DISPATCHED
    collector.assert_awaited_once()
    (terminal,) = terminals.created
    assert terminal.sent[0].endswith('echo "the team" && exit')
    assert terminal.disposed is True


@pytest.mark.asyncio
async def test_cancelled_collection_dispatches_nothing(runner, terminals):
    await runner.refresh()
    (script,) = runner.catalog.find("Greet")

    outcome = await runner.execute_script(script, collector=AsyncMock(return_value=None))

    assert outcome == ExecutionOutcome.CANCELLED
    (terminal,) = terminals.created
    assert terminal.sent == []
    assert terminal.disposed is True


@pytest.mark.asyncio
async def test_cancel_keeps_reused_terminal(runner, terminals):
    await runner.refresh()
    (hello,) = runner.catalog.find("Hello")
    await runner.execute_script(hello)
    await runner.wait_for_pending()

    outcome = await runner.execute_script(hello, collector=AsyncMock(return_value=None))

    assert outcome == ExecutionOutcome.CANCELLED
    (terminal,) = terminals.created
    assert terminal.disposed is False


@pytest.mark.asyncio
async def test_close_on_exit_spares_reused_terminal(runner, terminals, builtin):
    await runner.refresh()
    (hello,) = runner.catalog.find("Hello")
    await runner.execute_script(hello)
    await runner.wait_for_pending()
    tidy = Script(
        metadata=ScriptManifestEntry(
            name="Tidy",
            description="Clean up",
            platforms={"linux": "echo c"},
            terminal={"onExit": {"close": True}},
        ),
        path=builtin,
        source_name="Built-in Scripts",
        source_path=builtin,
        inline_script="echo c",
    )

    await runner.execute_script(tidy)
    await runner.wait_for_pending()

    (terminal,) = terminals.created
    assert terminal.sent[-1].endswith("; echo c")
    assert terminal.disposed is False


@pytest.mark.asyncio
async def test_execution_errors_close_fresh_terminal(runner, terminals):
    await runner.refresh()
    (ruby,) = runner.catalog.find("Ruby")
    (greet,) = runner.catalog.find("Greet")

    with pytest.raises(NoInterpreterConfiguredError):
        await runner.execute_script(ruby)
    with pytest.raises(MissingParameterError):
        await runner.execute_script(greet)

    assert len(terminals.created) == 2
    assert all(t.disposed and t.sent == [] for t in terminals.created)


@pytest.mark.asyncio
async def test_pins_survive_reload(runner):
    await runner.refresh()
    (hello,) = runner.catalog.find("Hello")

    assert runner.toggle_pin(hello) is True
    await runner.refresh()

    (reloaded,) = runner.catalog.find("Hello")
    assert runner.is_pinned(reloaded)
    assert [s.name for s in runner.pinned_scripts()] == ["Hello"]

    assert runner.toggle_pin(reloaded) is False
    assert runner.pinned_scripts() == []


@pytest.mark.asyncio
async def test_workspace_folder_becomes_source(tmp_path, builtin, terminals):
    workspace = tmp_path / "project"
    write_manifest(
        workspace, [{"name": "Build", "description": "d", "platforms": {"linux": "make"}}]
    )
    settings = RunnerSettings(
        home=tmp_path / "home",
        workspace=workspace,
        close_delay=0,
        builtin_scripts_path=builtin,
    )
    runner = create_runner(
        settings, syncer=FakeSyncer(), terminal_factory=terminals, platform=HostPlatform.LINUX
    )

    await runner.refresh()

    assert runner.get_all_sources() == ["Built-in Scripts", "Workspace: project"]
