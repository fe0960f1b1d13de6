"""Model catalogue and the interactive model picker."""

from dataclasses import dataclass

from . import fmt
from .permissions import prompt_toolkit_reader

DEFAULT_AGENT_MODEL = "claude-sonnet-4.6"
MAX_MODEL_ID_LENGTH = 50


@dataclass(frozen=True)
class ModelInfo:
    id: str
    vendor: str
    description: str


@dataclass(frozen=True)
class AgentModel:
    id: str
    label: str
    description: str


POPULAR_MODELS = [
    ModelInfo("gpt-5-nano", "OpenAI", "GPT-5 Nano, fast and lightweight"),
    ModelInfo("gpt-5-mini", "OpenAI", "GPT-5 Mini, balanced"),
    ModelInfo("gpt-5", "OpenAI", "GPT-5, flagship"),
    ModelInfo("gpt-5-pro", "OpenAI", "GPT-5 Pro, highest capability"),
    ModelInfo("gpt-4o", "OpenAI", "GPT-4o, multimodal"),
    ModelInfo("o3", "OpenAI", "o3, advanced reasoning"),
    ModelInfo("o4-mini", "OpenAI", "o4 Mini, fast reasoning"),
    ModelInfo("claude-opus-4.6", "Anthropic", "Claude Opus 4.6, most capable"),
    ModelInfo("claude-sonnet-4.6", "Anthropic", "Claude Sonnet 4.6, balanced power"),
    ModelInfo("claude-opus-4.5", "Anthropic", "Claude Opus 4.5, flagship"),
    ModelInfo("claude-sonnet-4.5", "Anthropic", "Claude Sonnet 4.5, enhanced"),
    ModelInfo("claude-sonnet-4", "Anthropic", "Claude Sonnet 4, reliable"),
    ModelInfo("claude-opus-4", "Anthropic", "Claude Opus 4, capable"),
    ModelInfo("claude-haiku-4.5", "Anthropic", "Claude Haiku 4.5, fast and cheap"),
    ModelInfo("gemini-2.5-flash", "Google", "Gemini 2.5 Flash, fast"),
    ModelInfo("gemini-2.5-pro", "Google", "Gemini 2.5 Pro, advanced"),
    ModelInfo("gemini-3-flash", "Google", "Gemini 3 Flash, next-gen fast"),
    ModelInfo("gemini-3-pro", "Google", "Gemini 3 Pro, next-gen pro"),
    ModelInfo("grok-4", "xAI", "Grok 4, latest flagship"),
    ModelInfo("grok-3", "xAI", "Grok 3, reasoning"),
    ModelInfo("grok-3-mini", "xAI", "Grok 3 Mini, compact"),
    ModelInfo("deepseek-r1", "DeepSeek", "DeepSeek R1, reasoning"),
    ModelInfo("deepseek-chat", "DeepSeek", "DeepSeek Chat, general"),
    ModelInfo("mistral-medium-3", "Mistral", "Mistral Medium 3, balanced"),
    ModelInfo("mistral-small-3", "Mistral", "Mistral Small 3, efficient"),
    ModelInfo("meta-llama/llama-4-maverick", "Meta", "Llama 4 Maverick"),
    ModelInfo("meta-llama/llama-4-scout", "Meta", "Llama 4 Scout"),
    ModelInfo("qwen-max", "Alibaba", "Qwen Max, most capable"),
    ModelInfo("qwen-plus", "Alibaba", "Qwen Plus, balanced"),
]

# Good at tool use
RECOMMENDED_AGENT_MODELS = [
    AgentModel("claude-opus-4.6", "Claude Opus 4.6", "Most capable, best for complex tasks"),
    AgentModel("claude-sonnet-4.6", "Claude Sonnet 4.6", "Balanced, great tool use, faster"),
    AgentModel("claude-sonnet-4.5", "Claude Sonnet 4.5", "Enhanced Sonnet"),
    AgentModel("claude-sonnet-4", "Claude Sonnet 4", "Reliable, well-tested"),
    AgentModel("gpt-5", "GPT-5", "OpenAI flagship"),
    AgentModel("gpt-5-mini", "GPT-5 Mini", "Fast OpenAI"),
    AgentModel("gemini-2.5-pro", "Gemini 2.5 Pro", "Google advanced"),
    AgentModel("grok-4", "Grok 4", "xAI flagship"),
    AgentModel("deepseek-r1", "DeepSeek R1", "Reasoning model"),
]


def format_models_table() -> str:
    """Plain-text table of POPULAR_MODELS grouped by vendor."""
    lines: list[str] = []
    vendor = None
    for m in POPULAR_MODELS:
        if m.vendor != vendor:
            vendor = m.vendor
            lines.append("")
            lines.append(f"  -- {vendor} --")
        lines.append(f"    {m.id.ljust(38)} {m.description}")
    return "\n".join(lines)


def resolve_choice(answer: str, default: str) -> str:
    """Map one line of picker input to a model id.

    Empty input picks the default, a number picks from
    RECOMMENDED_AGENT_MODELS, anything else is a custom model id. Ids with
    spaces or longer than MAX_MODEL_ID_LENGTH fall back to the default.
    """
    value = answer.strip()
    if not value:
        return default
    if value.isdigit():
        index = int(value)
        if 1 <= index <= len(RECOMMENDED_AGENT_MODELS):
            return RECOMMENDED_AGENT_MODELS[index - 1].id
    if " " in value or len(value) > MAX_MODEL_ID_LENGTH:
        fmt.warning("invalid model ID, using default.")
        return default
    return value


def pick_model(default: str = DEFAULT_AGENT_MODEL, reader=None) -> str:
    """Show the recommended agent models and let the user choose one."""
    reader = reader or prompt_toolkit_reader
    fmt.model_menu(
        [(m.id, m.label, m.description) for m in RECOMMENDED_AGENT_MODELS],
        default,
    )
    try:
        answer = reader([("bold fg:ansigreen", "  Model > ")])
    except (EOFError, KeyboardInterrupt):
        return default
    return resolve_choice(answer or "", default)
