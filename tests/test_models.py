"""Tests for the model catalogue and picker."""

from io import StringIO
from unittest.mock import patch

import pytest
from rich.console import Console

from puter_ai import fmt
from puter_ai.models import (
    DEFAULT_AGENT_MODEL,
    POPULAR_MODELS,
    RECOMMENDED_AGENT_MODELS,
    format_models_table,
    pick_model,
    resolve_choice,
)


@pytest.fixture
def captured():
    buf = StringIO()
    old = fmt._console
    fmt._console = Console(file=buf, no_color=True, width=120)
    yield buf
    fmt._console = old


class TestCatalogue:
    def test_default_chat_model_listed(self):
        assert "gpt-5-nano" in [m.id for m in POPULAR_MODELS]

    def test_default_agent_model_recommended(self):
        assert DEFAULT_AGENT_MODEL in [m.id for m in RECOMMENDED_AGENT_MODELS]

    def test_table_grouped_by_vendor(self):
        table = format_models_table()
        assert table.count("-- OpenAI --") == 1
        assert table.count("-- Anthropic --") == 1
        assert table.index("-- OpenAI --") < table.index("gpt-5-nano") < table.index("-- Anthropic --")
        assert "meta-llama/llama-4-scout" in table


class TestResolveChoice:
    def test_enter_picks_default(self):
        assert resolve_choice("", "claude-sonnet-4.6") == "claude-sonnet-4.6"

    def test_number(self):
        assert resolve_choice("1", "x") == RECOMMENDED_AGENT_MODELS[0].id
        assert resolve_choice(str(len(RECOMMENDED_AGENT_MODELS)), "x") == RECOMMENDED_AGENT_MODELS[-1].id

    def test_custom_id(self):
        assert resolve_choice(" qwen-max ", "x") == "qwen-max"

    def test_id_with_spaces_falls_back(self, captured):
        assert resolve_choice("please use the best one", "dflt") == "dflt"
        assert "invalid model ID" in captured.getvalue()

    def test_overlong_id_falls_back(self, captured):
        assert resolve_choice("m" * 51, "dflt") == "dflt"

    def test_fifty_chars_is_fine(self):
        assert resolve_choice("m" * 50, "dflt") == "m" * 50


class TestPickModel:
    def test_lists_models_and_marks_default(self, captured):
        pick_model("gpt-5", reader=lambda message: "")
        out = captured.getvalue()
        assert "[1]" in out
        assert "Claude Opus 4.6" in out
        assert " *  [5] GPT-5" in out
        assert "Press Enter for default: gpt-5" in out

    def test_returns_choice(self, captured):
        assert pick_model(reader=lambda message: "2") == RECOMMENDED_AGENT_MODELS[1].id

    def test_eof_picks_default(self, captured):
        def reader(message):
            raise EOFError

        assert pick_model("grok-4", reader=reader) == "grok-4"

    def test_default_reader_is_prompt_toolkit(self, captured):
        with patch("puter_ai.models.prompt_toolkit_reader", return_value="1") as reader:
            assert pick_model() == RECOMMENDED_AGENT_MODELS[0].id
        message = reader.call_args[0][0]
        assert "".join(text for _, text in message) == "  Model > "
