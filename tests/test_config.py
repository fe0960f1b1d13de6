"""Tests for puter_ai.config (TOML settings) and puter_ai.auth (credential store)."""

import argparse
import json
import tomllib

import pytest

from puter_ai import auth
from puter_ai.config import (
    apply_config_to_args,
    generate_config,
    global_config_dir,
    load_config,
)
from puter_ai.errors import AuthError, ConfigError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_toml(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _make_args(**overrides):
    """Namespace mimicking an unset `do` invocation."""
    defaults = {
        "model": None,
        "base_url": None,
        "temperature": None,
        "max_tokens": None,
        "max_iterations": None,
        "auto": None,
        "stream": None,
        "system": None,
        "color": None,
        "no_color": None,
        "quiet": None,
    }
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


# ===========================================================================
# Config directory
# ===========================================================================


class TestConfigDir:
    def test_override_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PUTER_AI_CONFIG_DIR", str(tmp_path / "custom"))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert global_config_dir() == tmp_path / "custom"

    def test_xdg(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PUTER_AI_CONFIG_DIR")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert global_config_dir() == tmp_path / "xdg" / "puter-ai"

    def test_home_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PUTER_AI_CONFIG_DIR")
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert global_config_dir() == tmp_path / ".config" / "puter-ai"


# ===========================================================================
# Config loading
# ===========================================================================


class TestLoadConfig:
    def test_missing_files_returns_empty(self, tmp_path):
        assert load_config(tmp_path) == {}

    def test_global_only(self, tmp_path, isolated_config):
        _write_toml(isolated_config / "config.toml", 'model = "gpt-5"\n')
        assert load_config(tmp_path) == {"model": "gpt-5"}

    def test_project_overrides_global(self, tmp_path, isolated_config):
        _write_toml(isolated_config / "config.toml", 'model = "gpt-5"\nstream = true\n')
        _write_toml(tmp_path / "puter-ai.toml", 'model = "grok-4"\n')
        assert load_config(tmp_path) == {"model": "grok-4", "stream": True}

    def test_no_project_dir(self, isolated_config):
        _write_toml(isolated_config / "config.toml", "max_iterations = 10\n")
        assert load_config() == {"max_iterations": 10}

    def test_invalid_toml(self, tmp_path):
        _write_toml(tmp_path / "puter-ai.toml", "model = \n")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_config(tmp_path)

    def test_type_mismatch(self, tmp_path):
        _write_toml(tmp_path / "puter-ai.toml", 'max_iterations = "ten"\n')
        with pytest.raises(ConfigError, match="'max_iterations' expected int"):
            load_config(tmp_path)

    def test_bool_rejected_for_numbers(self, tmp_path):
        _write_toml(tmp_path / "puter-ai.toml", "temperature = true\n")
        with pytest.raises(ConfigError, match="got bool"):
            load_config(tmp_path)

    def test_int_accepted_for_temperature(self, tmp_path):
        _write_toml(tmp_path / "puter-ai.toml", "temperature = 1\n")
        assert load_config(tmp_path) == {"temperature": 1}

    def test_max_iterations_must_be_positive(self, tmp_path):
        _write_toml(tmp_path / "puter-ai.toml", "max_iterations = 0\n")
        with pytest.raises(ConfigError, match="at least 1"):
            load_config(tmp_path)

    def test_unknown_key_warns_and_is_dropped(self, tmp_path, capsys):
        _write_toml(tmp_path / "puter-ai.toml", 'model = "x"\nfrobnicate = 1\n')
        assert load_config(tmp_path) == {"model": "x"}
        assert "unknown config key 'frobnicate'" in capsys.readouterr().err


class TestApplyConfig:
    def test_config_fills_unset_values(self):
        args = _make_args()
        apply_config_to_args(
            args, {"model": "gpt-5", "auto_approve": True, "system_prompt": "Be brief."}
        )
        assert args.model == "gpt-5"
        assert args.auto is True
        assert args.system == "Be brief."

    def test_cli_wins(self):
        args = _make_args(model="cli-model", max_iterations=7)
        apply_config_to_args(args, {"model": "cfg-model", "max_iterations": 50})
        assert args.model == "cli-model"
        assert args.max_iterations == 7

    def test_defaults_swept_in(self):
        args = _make_args()
        apply_config_to_args(args, {})
        assert args.max_iterations == 25
        assert args.auto is False
        assert args.stream is False
        assert args.quiet is False
        assert args.model is None

    def test_missing_attributes_are_added(self):
        args = argparse.Namespace(token=None)
        apply_config_to_args(args, {})
        assert args.max_iterations == 25
        assert args.color is False

    def test_color_true(self):
        args = _make_args()
        apply_config_to_args(args, {"color": True})
        assert args.color is True
        assert args.no_color is False

    def test_color_false(self):
        args = _make_args()
        apply_config_to_args(args, {"color": False})
        assert args.color is False
        assert args.no_color is True

    def test_cli_no_color_beats_config_color(self):
        args = _make_args(no_color=True)
        apply_config_to_args(args, {"color": True})
        assert args.no_color is True
        assert args.color is False


class TestGenerateConfig:
    def test_template_is_valid_toml_when_uncommented(self):
        lines = []
        for line in generate_config().splitlines():
            if line.startswith("# ") and "=" in line:
                lines.append(line[2:].split("#")[0])
        parsed = tomllib.loads("\n".join(lines))
        assert parsed["max_iterations"] == 25
        assert parsed["auto_approve"] is False


# ===========================================================================
# Credentials
# ===========================================================================


class TestAuth:
    def test_no_token(self):
        assert auth.get_token() == ""

    def test_save_and_get(self, isolated_config):
        auth.save_token("abc123")
        assert auth.get_token() == "abc123"
        data = json.loads((isolated_config / "auth.json").read_text(encoding="utf-8"))
        assert data["auth_token"] == "abc123"

    def test_env_var_wins(self, monkeypatch):
        auth.save_token("saved")
        monkeypatch.setenv("PUTER_TOKEN", "from-env")
        assert auth.get_token() == "from-env"

    def test_default_model(self):
        assert auth.get_default_model() == "gpt-5-nano"
        auth.set_default_model("claude-haiku-4.5")
        assert auth.get_default_model() == "claude-haiku-4.5"

    def test_token_and_model_kept_together(self):
        auth.save_token("tok")
        auth.set_default_model("gpt-5")
        assert auth.get_token() == "tok"
        assert auth.get_default_model() == "gpt-5"

    def test_require_token(self):
        with pytest.raises(AuthError, match="puter.auth.getToken"):
            auth.require_token()
        auth.save_token("t")
        assert auth.require_token() == "t"

    def test_auth_error_is_config_error(self):
        with pytest.raises(ConfigError):
            auth.require_token()

    def test_corrupt_file(self, isolated_config):
        (isolated_config / "auth.json").write_text("{nope", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid JSON"):
            auth.get_token()

    def test_mask_token(self):
        assert auth.mask_token("abcdefgh12345678wxyz") == "abcdefgh...wxyz"
        assert auth.mask_token("short") == "*****"
