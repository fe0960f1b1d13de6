import pytest


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep every test away from the real ~/.config/puter-ai and PUTER_TOKEN."""
    config_dir = tmp_path_factory.mktemp("puter-ai-config")
    monkeypatch.setenv("PUTER_AI_CONFIG_DIR", str(config_dir))
    monkeypatch.delenv("PUTER_TOKEN", raising=False)
    return config_dir
