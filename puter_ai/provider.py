"""Model provider access through LiteLLM.

Puter exposes an OpenAI-compatible chat endpoint; every model id is routed
through LiteLLM's ``openai/`` provider against that endpoint with the user's
Puter token as the bearer key.
"""

import logging
import re

from .errors import ProviderError, RateLimitError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.puter.com/puterai/openai/v1"

_RATE_LIMIT_RE = re.compile(r"rate.?limit|\b429\b|too many requests", re.IGNORECASE)


def is_rate_limit(error: BaseException) -> bool:
    """Return True for provider errors that signal rate limiting."""
    if isinstance(error, RateLimitError):
        return True
    status = getattr(error, "status_code", None)
    if status == 429:
        return True
    return bool(_RATE_LIMIT_RE.search(str(error)))


def _model_route(model: str) -> str:
    return model if model.startswith("openai/") else f"openai/{model}"


def chat(
    messages: list,
    *,
    model: str,
    api_key: str | None,
    base_url: str | None = None,
    tools: list | None = None,
    stream: bool = False,
    temperature: float | None = None,
    max_tokens: int | None = None,
):
    """Send a chat request.

    Returns the LiteLLM response object, or an iterator of text chunks when
    stream is True. Raises RateLimitError or ProviderError on failure.
    """
    import litellm

    litellm.suppress_debug_info = True

    completion_kwargs = dict(
        model=_model_route(model),
        messages=messages,
        api_base=base_url or DEFAULT_BASE_URL,
        api_key=api_key,
    )
    if tools:
        completion_kwargs["tools"] = tools
        completion_kwargs["tool_choice"] = "auto"
    for key, val in [("temperature", temperature), ("max_tokens", max_tokens)]:
        if val is not None:
            completion_kwargs[key] = val
    if stream:
        completion_kwargs["stream"] = True

    logger.debug(
        "chat request: model=%s messages=%d tools=%d stream=%s",
        model,
        len(messages),
        len(tools or []),
        stream,
    )

    try:
        response = litellm.completion(**completion_kwargs)
    except litellm.RateLimitError as e:
        raise RateLimitError(f"rate limited: {e}") from e
    except Exception as e:
        if is_rate_limit(e):
            raise RateLimitError(f"rate limited: {e}") from e
        raise ProviderError(f"LLM call failed: {e}") from e

    if stream:
        return stream_text(response)
    return response


def stream_text(chunks):
    """Yield the text deltas of a streamed LiteLLM response."""
    try:
        for chunk in chunks:
            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            text = getattr(delta, "content", None) if delta is not None else None
            if text:
                yield text
    except ProviderError:
        raise
    except Exception as e:
        if is_rate_limit(e):
            raise RateLimitError(f"rate limited: {e}") from e
        raise ProviderError(f"stream interrupted: {e}") from e
