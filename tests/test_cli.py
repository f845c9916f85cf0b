import asyncio
import sys
from unittest.mock import patch

import pytest

from scriptrunner.catalog import ParameterSpec
from scriptrunner.interface.cli import make_collector
from scriptrunner.interface.main import main, parse_arguments


class RecordingShell:
    instances: list["RecordingShell"] = []

    def __init__(self, name, platform=None):
        self.name = name
        self.sent = []
        self.finished = False
        RecordingShell.instances.append(self)

    def send_text(self, text):
        self.sent.append(text)

    def show(self):
        pass

    def dispose(self):
        self.finished = True

    def is_alive(self):
        return not self.finished

    def finish(self, timeout=None):
        self.finished = True
        return 0


def run_main(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.delenv("SCRIPTRUNNER_WORKSPACE", raising=False)
    return str(tmp_path / "home")


def test_parse_run_arguments():
    args = parse_arguments(["run", "Deploy", "--source", "ops", "-p", "env=prod", "-p", "dry=true"])

    assert args.command == "run"
    assert args.name == "Deploy"
    assert args.source == "ops"
    assert args.param == ["env=prod", "dry=true"]


def test_list_shows_builtin_scripts(home, capsys):
    assert run_main(["--home", home, "list"]) == 0

    assert "Hello" in capsys.readouterr().out


def test_sources_list_includes_builtin(home, capsys):
    assert run_main(["--home", home, "sources", "list"]) == 0

    assert "Built-in Scripts" in capsys.readouterr().out


def test_configuration_errors_exit_with_code_2(home, capsys):
    assert run_main(["--home", home, "sources", "remove", "Built-in Scripts"]) == 2
    assert "Disable the built-in source" in capsys.readouterr().err


def test_disabled_runner(home, capsys):
    assert run_main(["--home", home, "disable"]) == 0
    assert run_main(["--home", home, "list"]) == 2
    assert run_main(["--home", home, "enable"]) == 0
    assert run_main(["--home", home, "list"]) == 0


def test_patterns_add_and_remove(home, capsys):
    assert run_main(["--home", home, "patterns", "add", "*.rb", "ruby"]) == 0
    assert run_main(["--home", home, "patterns", "list"]) == 0
    assert "ruby" in capsys.readouterr().out

    assert run_main(["--home", home, "patterns", "remove", "*.rb"]) == 0
    assert run_main(["--home", home, "patterns", "remove", "*.rb"]) == 2


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX inline command")
def test_run_dispatches_to_shell(home):
    RecordingShell.instances.clear()

    with patch("scriptrunner.interface.cli.ShellTerminal", RecordingShell):
        code = run_main(["--home", home, "run", "Disk usage", "--no-input", "-p", "path=/tmp"])

    assert code == 0
    (shell,) = RecordingShell.instances
    assert shell.sent[0].endswith("du -sh /tmp")
    assert shell.finished is True


def test_run_unknown_script(home):
    assert run_main(["--home", home, "run", "Does not exist"]) == 1


def test_collector_treats_ctrl_c_as_cancel():
    collector = make_collector({}, interactive=True)
    params = [ParameterSpec(name="target")]

    with patch("scriptrunner.interface.cli.Prompt.ask", side_effect=KeyboardInterrupt):
        assert asyncio.run(collector(params)) is None


def test_collector_only_prompts_for_missing_values():
    collector = make_collector({"env": "prod"}, interactive=True)
    params = [ParameterSpec(name="env"), ParameterSpec(name="region", default="eu")]

    with patch("scriptrunner.interface.cli.Prompt.ask", return_value="us") as ask:
        assert asyncio.run(collector(params)) == {"region": "us"}

    ask.assert_called_once()
