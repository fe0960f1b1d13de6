"""Puter credential store.

The auth token and the default chat model are kept in ``auth.json`` next to
the global ``config.toml``. The ``PUTER_TOKEN`` environment variable takes
priority over the saved token.
"""

import json
import os
from pathlib import Path

from .config import global_config_dir
from .errors import AuthError, ConfigError

DEFAULT_MODEL = "gpt-5-nano"
AUTH_FILE_NAME = "auth.json"

SETUP_INSTRUCTIONS = (
    "No auth token found.\n"
    'Run "puter-ai auth <your-token>" to set your token, or set the PUTER_TOKEN '
    "environment variable.\n\n"
    "To get a token:\n"
    "  1. Go to https://puter.com and sign in/sign up\n"
    "  2. Open DevTools Console (F12)\n"
    "  3. Run: puter.auth.getToken()\n"
    "  4. Copy the token"
)


def auth_path() -> Path:
    return global_config_dir() / AUTH_FILE_NAME


def _load_state() -> dict:
    path = auth_path()
    if not path.is_file():
        return {}
    try:
        state = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON: {e}") from e
    except OSError as e:
        raise ConfigError(f"{path}: cannot read file: {e}") from e
    if not isinstance(state, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return state


def _save_state(state: dict) -> None:
    path = auth_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(state, indent=2) + "\n", encoding="utf-8")
        os.chmod(path, 0o600)
    except OSError as e:
        raise ConfigError(f"{path}: cannot write file: {e}") from e


def get_token() -> str:
    """Return the auth token, or an empty string when none is configured."""
    env_token = os.environ.get("PUTER_TOKEN")
    if env_token:
        return env_token
    token = _load_state().get("auth_token")
    return token if isinstance(token, str) else ""


def save_token(token: str) -> None:
    state = _load_state()
    state["auth_token"] = token
    _save_state(state)


def get_default_model() -> str:
    model = _load_state().get("default_model")
    if isinstance(model, str) and model:
        return model
    return DEFAULT_MODEL


def set_default_model(model: str) -> None:
    state = _load_state()
    state["default_model"] = model
    _save_state(state)


def require_token() -> str:
    """Return the auth token or raise AuthError with setup instructions."""
    token = get_token()
    if not token:
        raise AuthError(SETUP_INSTRUCTIONS)
    return token


def mask_token(token: str) -> str:
    """Show the first 8 and last 4 characters of a token."""
    if len(token) <= 12:
        return "*" * len(token)
    return f"{token[:8]}...{token[-4:]}"
