from pathlib import Path

import pytest

from scriptrunner.catalog import ExitSettings, HostPlatform, Script, ScriptManifestEntry
from scriptrunner.errors import MissingParameterError, NoInterpreterConfiguredError
from scriptrunner.execution import DEFAULT_FILE_PATTERNS, CommandSynthesizer, FilePattern, quote_value
from scriptrunner.execution.synthesizer import ShellDialect


SOURCE = Path("/srv/sources/ops")


def make_script(path="/srv/sources/ops/scripts/deploy.py", inline=None, **entry):
    entry.setdefault("name", "Deploy")
    entry.setdefault("description", "Ship it")
    return Script(
        metadata=ScriptManifestEntry(**entry),
        path=Path(path),
        source_name="ops",
        source_path=SOURCE,
        inline_script=inline,
    )


@pytest.fixture
def posix():
    return CommandSynthesizer(HostPlatform.LINUX)


@pytest.fixture
def windows():
    return CommandSynthesizer(HostPlatform.WINDOWS)


def test_quote_value():
    assert quote_value("plain") == "plain"
    assert quote_value("hello world") == '"hello world"'
    assert quote_value('"already quoted"') == '"already quoted"'
    assert quote_value("'single quoted'") == "'single quoted'"


def test_inline_script_without_parameters_is_unchanged(posix):
    script = make_script(path="/srv/sources/ops/scripts", inline="echo hi")

    assert posix.build_invocation(script, {}, DEFAULT_FILE_PATTERNS) == "echo hi"


def test_inline_placeholders_quoted_once(posix):
    script = make_script(
        path="/srv/sources/ops/scripts",
        inline="greet {msg} && greet {msg}",
        parameters=[{"name": "msg"}],
    )

    values = posix.resolve_parameters(script, {"msg": "hello world"})

    assert posix.build_invocation(script, values, []) == 'greet "hello world" && greet "hello world"'


def test_inline_placeholders_for_unset_parameters(posix):
    script = make_script(
        path="/srv/sources/ops/scripts",
        inline="run {flag} {unknown}",
        parameters=[{"name": "flag"}],
    )

    assert posix.build_invocation(script, {}, []) == "run  {unknown}"


def test_substituted_values_are_not_rescanned(posix):
    script = make_script(
        path="/srv/sources/ops/scripts",
        inline="echo {a} {b}",
        parameters=[{"name": "a"}, {"name": "b"}],
    )

    assert posix.build_invocation(script, {"a": "{b}", "b": "x"}, []) == "echo {b} x"


def test_file_script_uses_matching_pattern(posix):
    script = make_script(parameters=[{"name": "env"}, {"name": "dry"}])
    values = posix.resolve_parameters(script, {"env": "staging", "dry": True})

    command = posix.build_invocation(script, values, DEFAULT_FILE_PATTERNS)

    assert command == 'python3 "/srv/sources/ops/scripts/deploy.py" staging true'


def test_file_script_without_pattern_raises(posix):
    script = make_script(path="/srv/sources/ops/scripts/deploy.rb")

    with pytest.raises(NoInterpreterConfiguredError) as exc_info:
        posix.synthesize(script, {}, DEFAULT_FILE_PATTERNS)

    assert exc_info.value.file_name == "deploy.rb"


def test_custom_pattern_precedes_defaults(posix):
    patterns = [FilePattern(pattern="deploy.*", command="uv run"), *DEFAULT_FILE_PATTERNS]

    command = posix.build_invocation(make_script(), {}, patterns)

    assert command.startswith('uv run "')


def test_defaults_and_booleans(posix):
    script = make_script(
        parameters=[
            {"name": "verbose", "type": "boolean", "default": False},
            {"name": "region", "default": "eu west"},
            {"name": "unset"},
        ]
    )

    assert posix.resolve_parameters(script, {}) == {"verbose": "false", "region": '"eu west"'}
    assert posix.resolve_parameters(script, {"verbose": True, "region": "us"}) == {
        "verbose": "true",
        "region": "us",
    }


def test_missing_required_parameter(posix):
    script = make_script(parameters=[{"name": "target", "required": True}])

    with pytest.raises(MissingParameterError) as exc_info:
        posix.resolve_parameters(script, {"target": ""})

    assert exc_info.value.parameter_name == "target"


def test_exit_suffix_order(posix, windows):
    everything = ExitSettings(refresh=True, clear=True, close=True)

    assert posix.exit_suffix(everything) == ' && exec "${SHELL:-sh}" && clear && exit'
    assert windows.exit_suffix(everything) == " ; powershell ; Clear-Host ; exit"
    assert posix.exit_suffix(ExitSettings(clear=True)) == " && clear"
    assert posix.exit_suffix(ExitSettings()) == ""


def test_env_preamble(posix, windows):
    script = make_script()

    assert posix.env_preamble(script) == (
        'export SCRIPTS_RUNNER_SOURCE_PATH="/srv/sources/ops"; '
        'export SCRIPTS_RUNNER_SOURCE_NAME="ops"; '
        'export SCRIPTS_RUNNER_SCRIPT_DIR="/srv/sources/ops/scripts"; '
    )
    assert windows.env_preamble(script).startswith('$env:SCRIPTS_RUNNER_SOURCE_PATH="')


def test_inline_script_dir_is_manifest_dir(posix):
    script = make_script(path="/srv/sources/ops/scripts/tools", inline="ls")

    assert posix.environment(script)["SCRIPTS_RUNNER_SCRIPT_DIR"] == "/srv/sources/ops/scripts/tools"


def test_synthesize_concatenates_parts(posix):
    script = make_script(
        path="/srv/sources/ops/scripts",
        inline="echo {who}",
        parameters=[{"name": "who", "default": "team"}],
        terminal={"onExit": {"clear": True}},
    )

    command = posix.synthesize(script, None, [])

    assert command.startswith("export SCRIPTS_RUNNER_SOURCE_PATH=")
    assert command.endswith('; echo team && clear')


def test_inline_default_substitution(posix):
    script = make_script(
        path="/srv/sources/ops/scripts",
        inline="echo {msg}",
        parameters=[{"name": "msg", "default": "hi"}],
    )

    command = posix.synthesize(script, {}, [])

    assert command.endswith("; echo hi")


def test_file_pattern_fallback_to_later_pattern(posix):
    patterns = [
        FilePattern(pattern="*.sh", command="bash"),
        FilePattern(pattern="*.py", command="python"),
    ]

    command = posix.synthesize(make_script(), {}, patterns)

    assert command.endswith('python "/srv/sources/ops/scripts/deploy.py"')


def test_close_token_dropped_for_reused_session(posix):
    script = make_script(
        path="/srv/sources/ops/scripts",
        inline="echo c",
        terminal={"onExit": {"clear": True, "close": True}},
    )

    assert posix.synthesize(script, {}, [], close_allowed=False).endswith("; echo c && clear")
    assert posix.synthesize(script, {}, []).endswith("; echo c && clear && exit")


def test_shell_dialect_is_abstract():
    with pytest.raises(TypeError):
        ShellDialect(separator="&&", refresh="", clear="", close="")
