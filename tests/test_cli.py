"""Tests for the command-line entry point."""

from io import StringIO
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from rich.console import Console

from puter_ai import auth, cli, fmt
from puter_ai.agent import LoopResult
from puter_ai.cli import build_parser, main


@pytest.fixture
def captured(monkeypatch):
    """Capture fmt output; fmt.init is neutralised so it can't swap consoles back."""
    err, out = StringIO(), StringIO()
    old = fmt._console, fmt._out
    fmt._console = Console(file=err, no_color=True, width=200)
    fmt._out = Console(file=out, no_color=True, width=200)
    monkeypatch.setattr(fmt, "init", lambda **kwargs: None)
    yield SimpleNamespace(err=err, out=out)
    fmt._console, fmt._out = old


def _run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


class TestParser:
    def test_chat_options(self):
        args = build_parser().parse_args(
            ["chat", "Hello", "-m", "gpt-5", "-s", "-t", "0.3", "--max-tokens", "99", "--system", "sys"]
        )
        assert args.prompt == "Hello"
        assert args.model == "gpt-5"
        assert args.stream is True
        assert args.temperature == 0.3
        assert args.max_tokens == 99
        assert args.system == "sys"

    @pytest.mark.parametrize("alias", ["interactive", "i", "repl"])
    def test_interactive_aliases(self, alias):
        args = build_parser().parse_args([alias])
        assert args.handler is cli._cmd_interactive

    @pytest.mark.parametrize("alias", ["code", "agent", "c"])
    def test_code_aliases(self, alias):
        args = build_parser().parse_args([alias, "-p", "/tmp", "-a"])
        assert args.handler is cli._cmd_code
        assert args.project == "/tmp"
        assert args.auto is True

    def test_do_options(self):
        args = build_parser().parse_args(["do", "fix it", "--max-iterations", "5", "-q"])
        assert args.prompt == "fix it"
        assert args.max_iterations == 5
        assert args.quiet is True

    def test_unset_flags_are_none(self):
        args = build_parser().parse_args(["do", "x"])
        assert args.auto is None
        assert args.quiet is None
        assert args.color is None

    def test_color_flags_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["models", "--color", "--no-color"])


class TestSimpleCommands:
    def test_no_command_prints_help(self, captured, capsys):
        assert _run([]) == 0
        assert "puter-ai do" in capsys.readouterr().out

    def test_version(self, capsys):
        assert _run(["--version"]) == 0
        assert capsys.readouterr().out.strip()

    def test_auth_save(self, captured):
        assert _run(["auth", "my-secret-token-1234"]) == 0
        assert auth.get_token() == "my-secret-token-1234"
        assert "Auth token saved" in captured.err.getvalue()

    def test_auth_show_masked(self, captured):
        auth.save_token("abcdefgh-middle-wxyz")
        assert _run(["auth"]) == 0
        err = captured.err.getvalue()
        assert "abcdefgh...wxyz" in err
        assert "middle" not in err

    def test_auth_missing(self, captured):
        assert _run(["auth"]) == 0
        err = captured.err.getvalue()
        assert "No auth token configured" in err
        assert "puter.auth.getToken()" in err

    def test_models(self, captured):
        assert _run(["models"]) == 0
        assert "claude-sonnet-4.6" in captured.out.getvalue()

    def test_config_template(self, captured, isolated_config):
        assert _run(["config"]) == 0
        assert "# max_iterations = 25" in captured.out.getvalue()
        assert str(isolated_config) in captured.err.getvalue()

    def test_set_model(self, captured):
        assert _run(["set-model", "grok-4"]) == 0
        assert auth.get_default_model() == "grok-4"


class TestChatCommand:
    def test_requires_token(self, captured):
        assert _run(["chat", "hi"]) == 1
        assert "No auth token found" in captured.err.getvalue()

    def test_uses_default_model(self, captured):
        auth.save_token("tok")
        auth.set_default_model("claude-haiku-4.5")
        with patch("puter_ai.cli.single_chat") as single:
            assert _run(["chat", "hi"]) == 0
        kwargs = single.call_args[1]
        assert kwargs["model"] == "claude-haiku-4.5"
        assert kwargs["api_key"] == "tok"
        assert kwargs["stream"] is False

    def test_env_token(self, captured, monkeypatch):
        monkeypatch.setenv("PUTER_TOKEN", "env-tok")
        with patch("puter_ai.cli.single_chat") as single:
            _run(["chat", "hi", "-m", "gpt-5"])
        assert single.call_args[1]["api_key"] == "env-tok"
        assert single.call_args[1]["model"] == "gpt-5"

    def test_config_file_applies(self, captured, isolated_config):
        auth.save_token("tok")
        (isolated_config / "config.toml").write_text("stream = true\n", encoding="utf-8")
        with patch("puter_ai.cli.single_chat") as single:
            _run(["chat", "hi"])
        assert single.call_args[1]["stream"] is True


class TestAgentCommands:
    def test_do_passes_options(self, captured, tmp_path):
        auth.save_token("tok")
        with patch(
            "puter_ai.cli.agent_command", return_value=LoopResult(answer="ok", iterations=1)
        ) as do:
            code = _run(["do", "add error handling", "-p", str(tmp_path), "-a", "-m", "gpt-5"])
        assert code == 0
        args, kwargs = do.call_args
        assert args == ("add error handling",)
        assert kwargs["project"] == str(tmp_path)
        assert kwargs["auto_approve"] is True
        assert kwargs["model"] == "gpt-5"
        assert kwargs["max_iterations"] == 25
        assert kwargs["llm_kwargs"]["api_key"] == "tok"

    def test_do_exit_code_on_provider_error(self, captured, tmp_path):
        auth.save_token("tok")
        with patch(
            "puter_ai.cli.agent_command",
            return_value=LoopResult(answer=None, error="LLM call failed: x", iterations=1),
        ):
            assert _run(["do", "x", "-p", str(tmp_path)]) == 1

    def test_project_config_max_iterations(self, captured, tmp_path):
        auth.save_token("tok")
        (tmp_path / "puter-ai.toml").write_text("max_iterations = 7\n", encoding="utf-8")
        with patch(
            "puter_ai.cli.agent_command", return_value=LoopResult(answer="ok")
        ) as do:
            _run(["do", "x", "-p", str(tmp_path)])
        assert do.call_args[1]["max_iterations"] == 7

    def test_code_quiet(self, captured, tmp_path):
        auth.save_token("tok")
        with patch("puter_ai.cli.start_agent_mode") as code:
            assert _run(["code", "-p", str(tmp_path), "-q"]) == 0
        assert code.call_args[1]["verbose"] is False
        assert code.call_args[1]["model"] is None

    def test_keyboard_interrupt_exits_130(self, captured, tmp_path):
        auth.save_token("tok")
        with patch("puter_ai.cli.start_agent_mode", side_effect=KeyboardInterrupt):
            assert _run(["code", "-p", str(tmp_path)]) == 130

    def test_bad_config_exits_1(self, captured, tmp_path):
        (tmp_path / "puter-ai.toml").write_text("max_iterations = 'x'\n", encoding="utf-8")
        assert _run(["do", "x", "-p", str(tmp_path)]) == 1
        assert "expected int" in captured.err.getvalue()
