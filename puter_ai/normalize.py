"""Normalization of model replies into canonical history turns.

Providers hand tool calls back in two shapes:

* OpenAI style: ``message.tool_calls = [{id, function: {name, arguments}}]``
  where ``arguments`` is a JSON string (or, from some gateways, an object).
* Anthropic style: ``message.content = [{type: "tool_use", id, name, input}]``
  mixed with ``{type: "text", text}`` blocks.

Everything downstream works with :class:`ToolCall` and with assistant turns in
the OpenAI encoding, so all knowledge about reply shapes stays in this module.
Replies can be plain dicts or attribute objects (litellm ``Message``).
"""

import json
import uuid
from dataclasses import dataclass, field


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict = field(default_factory=dict)
    error: str | None = None  # set when the argument payload could not be decoded

    def to_openai(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments),
            },
        }


def _get(obj, key, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def unwrap_message(response):
    """Return the message part of a reply (``response.message`` or the reply itself)."""
    if isinstance(response, str):
        return response
    message = _get(response, "message")
    if message is not None and not isinstance(message, str):
        return message
    choices = _get(response, "choices")
    if isinstance(choices, (list, tuple)) and choices:
        inner = _get(choices[0], "message")
        if inner is not None:
            return inner
    return response


def _decode_arguments(payload) -> tuple[dict, str | None]:
    if payload is None or payload == "":
        return {}, None
    if isinstance(payload, dict):
        return payload, None
    if isinstance(payload, str):
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError as e:
            return {}, f"error: invalid JSON in tool arguments: {e}"
        if isinstance(parsed, dict):
            return parsed, None
        return {}, "error: tool arguments must be a JSON object"
    # Attribute objects from SDKs that already parsed the payload
    try:
        return dict(payload), None
    except (TypeError, ValueError):
        return {}, f"error: unsupported tool argument payload {type(payload).__name__}"


def _call_id(raw_id, seen: set[str]) -> str:
    call_id = raw_id if isinstance(raw_id, str) and raw_id else None
    if call_id is None or call_id in seen:
        call_id = f"call_{uuid.uuid4().hex[:24]}"
    seen.add(call_id)
    return call_id


def _content_blocks(message) -> list:
    content = _get(message, "content")
    if isinstance(content, (list, tuple)):
        return list(content)
    return []


def normalize_tool_calls(message) -> list[ToolCall]:
    """Extract the ordered tool calls of a reply in either known shape.

    Returns an empty list when the reply carries no tool calls or is malformed.
    """
    message = unwrap_message(message)
    if message is None or isinstance(message, str):
        return []

    calls: list[ToolCall] = []
    seen: set[str] = set()

    raw_calls = _get(message, "tool_calls")
    if isinstance(raw_calls, (list, tuple)) and raw_calls:
        for tc in raw_calls:
            function = _get(tc, "function")
            name = _get(function, "name") or _get(tc, "name")
            if not isinstance(name, str) or not name:
                continue
            payload = (
                _get(function, "arguments") if function is not None else _get(tc, "arguments")
            )
            arguments, error = _decode_arguments(payload)
            calls.append(
                ToolCall(
                    id=_call_id(_get(tc, "id"), seen),
                    name=name,
                    arguments=arguments,
                    error=error,
                )
            )
        return calls

    for block in _content_blocks(message):
        if _get(block, "type") != "tool_use":
            continue
        name = _get(block, "name")
        if not isinstance(name, str) or not name:
            continue
        arguments, error = _decode_arguments(_get(block, "input"))
        calls.append(
            ToolCall(
                id=_call_id(_get(block, "id"), seen),
                name=name,
                arguments=arguments,
                error=error,
            )
        )
    return calls


def content_text(content) -> str:
    """Coerce message content (string or list of typed blocks) to plain text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        texts = []
        for block in content:
            if isinstance(block, str):
                texts.append(block)
            elif _get(block, "type") == "text":
                text = _get(block, "text")
                if isinstance(text, str):
                    texts.append(text)
        return "".join(texts)
    return ""


def normalize_assistant_message(message, tool_calls: list[ToolCall]) -> dict:
    """Build the canonical assistant turn to append to history.

    Content is always a plain string; tool calls, if any, are always in the
    OpenAI encoding regardless of the shape the provider used.
    """
    message = unwrap_message(message)
    if isinstance(message, str):
        text = message
    else:
        text = content_text(_get(message, "content"))
    turn: dict = {"role": "assistant", "content": text}
    if tool_calls:
        turn["tool_calls"] = [tc.to_openai() for tc in tool_calls]
    return turn


def extract_text(response) -> str:
    """Best-effort text of a plain chat reply."""
    if isinstance(response, str):
        return response
    message = unwrap_message(response)
    if isinstance(message, str):
        return message
    text = content_text(_get(message, "content"))
    if text:
        return text
    # Some SDK reply objects stringify to their text
    rendered = _get(response, "text")
    if isinstance(rendered, str):
        return rendered
    return ""
