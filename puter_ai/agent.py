"""Agent loop, tool-call handling and the agentic REPL."""

import contextlib
import functools
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path

import tiktoken

from . import fmt
from . import provider
from .config import global_config_dir
from .errors import AgentBusyError, AgentError, ProviderError, RateLimitError
from .models import DEFAULT_AGENT_MODEL, pick_model
from .normalize import (
    ToolCall,
    normalize_assistant_message,
    normalize_tool_calls,
    unwrap_message,
)
from .permissions import PermissionGate, refusal_result
from .tools import COMMAND_TIMEOUT, SAFE, TOOLS, execute, risk_for, run_shell

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT_FILE = Path(__file__).parent / "system_prompt.txt"
MAX_ITERATIONS = 25
RATE_LIMIT_BACKOFF = 5.0  # seconds
MAX_RATE_LIMIT_RETRIES = 3
COMMAND_PREVIEW_LINES = 20
INTERRUPTED_RESULT = "Operation interrupted by user."
REPL_OWNER = "repl"


@dataclass
class LoopResult:
    answer: str | None
    exhausted: bool = False
    error: str | None = None
    iterations: int = 0


@functools.lru_cache(maxsize=1)
def _get_encoder():
    return tiktoken.get_encoding("cl100k_base")


def estimate_tokens(messages: list, tools: list | None = None) -> int:
    """Count tokens across all messages using tiktoken."""
    encoder = _get_encoder()
    total = 0
    for m in messages:
        content = m.get("content", "") or ""
        for tc in m.get("tool_calls") or []:
            fn = tc.get("function", {})
            content += fn.get("name", "") + (fn.get("arguments", "") or "")
        total += len(encoder.encode(content))
    if tools:
        total += len(encoder.encode(json.dumps(tools)))
    # Per-message overhead (role, separators), ~4 tokens each
    total += 4 * len(messages)
    return total


def build_system_prompt(base_dir: str, template: str | None = None) -> str:
    """Render the system prompt for a project directory.

    template overrides the bundled system_prompt.txt; a ``{project_dir}``
    placeholder in either is replaced with base_dir.
    """
    if template is None:
        template = DEFAULT_SYSTEM_PROMPT_FILE.read_text(encoding="utf-8")
    return template.replace("{project_dir}", str(base_dir)).strip()


def clear_history(messages: list) -> int:
    """Truncate history to its leading system turns. Returns turns removed."""
    leading = []
    for msg in messages:
        if msg.get("role") == "system":
            leading.append(msg)
        else:
            break
    dropped = len(messages) - len(leading)
    messages[:] = leading
    return dropped


def call_llm(messages: list, model_id: str, tools: list, llm_kwargs: dict):
    """One model call; returns the reply message."""
    response = provider.chat(messages, model=model_id, tools=tools, **llm_kwargs)
    return unwrap_message(response)


# ---------------------------------------------------------------------------
# Tool calls
# ---------------------------------------------------------------------------


def _tool_detail(tool_call: ToolCall) -> str:
    args = tool_call.arguments
    if tool_call.name == "run_command":
        return str(args.get("command", ""))
    if tool_call.name == "search_files":
        detail = f'"{args.get("pattern", "")}"'
        if args.get("path"):
            detail += f" in {args['path']}"
        return detail
    if "path" in args:
        return str(args["path"])
    return ""


def _tool_message(tool_call_id: str, content: str) -> dict:
    return {"role": "tool", "tool_call_id": tool_call_id, "content": content}


def _show_result(name: str, result: str) -> None:
    if result.startswith("error:"):
        fmt.tool_error(name, result.split("\n", 1)[0])
    elif name == "run_command":
        lines = result.split("\n")
        fmt.tool_output(lines[:COMMAND_PREVIEW_LINES], len(lines) - COMMAND_PREVIEW_LINES)
    elif name in ("write_file", "edit_file"):
        fmt.tool_done()
    else:
        fmt.tool_output([f"-> {len(result.splitlines())} lines returned"])


def handle_tool_call(
    tool_call: ToolCall,
    base_dir: str,
    gate: PermissionGate,
    verbose: bool = True,
) -> dict:
    """Run one tool call under the permission gate and return its tool turn.

    Never raises for tool failures: undecodable arguments, refusals and
    executor errors all become the content of the returned turn.
    """
    risk = risk_for(tool_call.name)
    if verbose:
        fmt.tool_call(tool_call.name, _tool_detail(tool_call), risky=risk != SAFE)

    if tool_call.error:
        if verbose:
            fmt.tool_error(tool_call.name, tool_call.error)
        return _tool_message(tool_call.id, tool_call.error)

    if gate.needs_approval(risk):
        refusal = refusal_result(gate.request(tool_call, risk, base_dir))
        if refusal is not None:
            return _tool_message(tool_call.id, refusal)

    result = execute(tool_call.name, tool_call.arguments, base_dir) or "(no output)"
    if verbose:
        _show_result(tool_call.name, result)
    return _tool_message(tool_call.id, result)


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


def _provider_failure(e: ProviderError, iterations: int) -> LoopResult:
    fmt.error(str(e))
    logger.error("provider error at iteration %d: %s", iterations, e)
    return LoopResult(answer=None, error=str(e), iterations=iterations)


def run_agent_loop(
    messages: list,
    *,
    model_id: str,
    base_dir: str,
    auto_approve: bool = False,
    max_iterations: int = MAX_ITERATIONS,
    gate: PermissionGate | None = None,
    llm_kwargs: dict | None = None,
    verbose: bool = True,
) -> LoopResult:
    """Run the tool-calling loop until a final answer or max_iterations.

    Mutates `messages` in place (appends assistant and tool turns). When a
    gate is passed, its own auto_approve setting applies and the auto_approve
    argument is ignored.
    """
    if gate is None:
        gate = PermissionGate(auto_approve=auto_approve)
    llm_kwargs = llm_kwargs or {}
    iterations = 0
    rate_limit_retries = 0

    while iterations < max_iterations:
        iterations += 1
        if verbose:
            fmt.step_header(iterations, max_iterations, estimate_tokens(messages, TOOLS))

        label = "Thinking..." if iterations == 1 else f"Working... (step {iterations})"
        spinner = fmt.llm_spinner(label) if verbose else contextlib.nullcontext()
        t0 = time.monotonic()
        try:
            with spinner:
                msg = call_llm(messages, model_id, TOOLS, llm_kwargs)
        except RateLimitError as e:
            if rate_limit_retries >= MAX_RATE_LIMIT_RETRIES:
                return _provider_failure(e, iterations)
            rate_limit_retries += 1
            # Retry the same iteration
            iterations -= 1
            fmt.warning(str(e))
            fmt.notice(f"Waiting {RATE_LIMIT_BACKOFF:.0f}s before retrying...")
            logger.debug("rate limited, retry %d/%d", rate_limit_retries, MAX_RATE_LIMIT_RETRIES)
            time.sleep(RATE_LIMIT_BACKOFF)
            continue
        except ProviderError as e:
            return _provider_failure(e, iterations)
        elapsed = time.monotonic() - t0
        rate_limit_retries = 0

        tool_calls = normalize_tool_calls(msg)
        turn = normalize_assistant_message(msg, tool_calls)
        messages.append(turn)
        logger.debug(
            "iteration %d: %d tool call(s) in %.1fs", iterations, len(tool_calls), elapsed
        )
        if verbose:
            fmt.llm_timing(elapsed, len(tool_calls))

        if not tool_calls:
            if verbose:
                fmt.completion(iterations)
            return LoopResult(answer=turn["content"], iterations=iterations)

        if verbose and turn["content"].strip():
            fmt.assistant_text(turn["content"].strip())

        for index, tc in enumerate(tool_calls):
            try:
                messages.append(handle_tool_call(tc, base_dir, gate, verbose))
            except KeyboardInterrupt:
                # Every issued call still gets its tool turn
                for pending in tool_calls[index:]:
                    messages.append(_tool_message(pending.id, INTERRUPTED_RESULT))
                raise

    fmt.warning(f"Reached max iterations ({max_iterations}).")
    return LoopResult(answer=None, exhausted=True, iterations=iterations)


# ---------------------------------------------------------------------------
# REPL
# ---------------------------------------------------------------------------

_REPL_COMMANDS = [
    ("/quit", "Exit (also /exit, /q)"),
    ("/clear", "Clear conversation"),
    ("/model <name>", "Switch AI model"),
    ("/auto", "Toggle auto-approve"),
    ("/help", "Show this help"),
    ("!<command>", "Run a shell command directly"),
]


def _repl_help() -> None:
    fmt.help_table(_REPL_COMMANDS)
    fmt.info("Examples: !ls -la, !git status, !pytest")


def _repl_shell(command: str, base_dir: str) -> None:
    """Run a `!` shell escape outside the agent loop."""
    if not command:
        return
    try:
        output, returncode, timed_out, truncated = run_shell(command, base_dir)
    except OSError as e:
        fmt.error(f"failed to start shell command: {e}")
        return
    if output.strip():
        fmt.plain(output.rstrip())
    if truncated:
        fmt.warning("output truncated at 1MB")
    if timed_out:
        fmt.error(f"command timed out after {COMMAND_TIMEOUT}s")
    else:
        fmt.exit_status(returncode)


def handle_repl_line(session, line: str) -> bool:
    """Handle one line of REPL input. Returns False when the REPL should exit."""
    line = line.strip()
    if not line:
        return True

    if line in ("/quit", "/exit", "/q"):
        fmt.info("Goodbye!")
        return False

    if line.startswith("!"):
        _repl_shell(line[1:].strip(), session.base_dir)
        return True

    cmd, _, arg = line.partition(" ")
    cmd = cmd.lower()
    arg = arg.strip()

    if cmd == "/help":
        _repl_help()
        return True
    if cmd == "/clear":
        dropped = session.clear()
        fmt.notice(f"Conversation cleared ({dropped} messages removed).")
        return True
    if cmd == "/model":
        if not arg:
            fmt.info(f"Current model: {session.model_id}")
        else:
            session.set_model(arg)
            fmt.notice(f"Switched to model: {session.model_id}")
        return True
    if cmd == "/auto":
        enabled = session.toggle_auto()
        fmt.notice(f"Auto-approve: {'ON' if enabled else 'OFF'}")
        return True

    # Anything else, unknown /foo included, is a task
    try:
        result = session.run_task(line)
    except KeyboardInterrupt:
        fmt.warning("interrupted, task aborted.")
        return True
    except AgentBusyError as e:
        fmt.warning(str(e))
        return True

    if result.answer:
        fmt.answer(result.answer)
    return True


def repl_loop(session) -> None:
    """Interactive read-eval-print loop over an AgentSession."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.formatted_text import FormattedText
    from prompt_toolkit.history import FileHistory

    history_path = global_config_dir() / "repl_history"
    history_path.parent.mkdir(parents=True, exist_ok=True)
    prompt_session = PromptSession(
        history=FileHistory(str(history_path)),
        enable_history_search=True,
    )
    prompt_text = FormattedText([("bold fg:ansigreen", "  You > ")])

    with session.arbiter.hold(REPL_OWNER):
        while True:
            try:
                print(file=sys.stderr)  # blank line before prompt
                line = session.arbiter.read(REPL_OWNER, prompt_session.prompt, prompt_text)
            except (EOFError, KeyboardInterrupt):
                print(file=sys.stderr)  # newline after ^D / ^C
                break
            if not handle_repl_line(session, line):
                break


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _resolve_project(project: str | None) -> str:
    base_dir = Path(project or os.getcwd()).expanduser().resolve()
    if not base_dir.is_dir():
        raise AgentError(f"project directory does not exist: {base_dir}")
    return str(base_dir)


def start_agent_mode(
    *,
    model: str | None = None,
    project: str | None = None,
    auto_approve: bool = False,
    max_iterations: int = MAX_ITERATIONS,
    llm_kwargs: dict | None = None,
    system_prompt: str | None = None,
    verbose: bool = True,
) -> None:
    """The `code` command: pick a model, then run the agentic REPL."""
    from .session import AgentSession

    base_dir = _resolve_project(project)
    model_id = model or pick_model(DEFAULT_AGENT_MODEL)
    fmt.success(f"Using: {model_id}")

    session = AgentSession(
        base_dir,
        model_id,
        auto_approve=auto_approve,
        max_iterations=max_iterations,
        llm_kwargs=llm_kwargs,
        system_prompt=system_prompt,
        verbose=verbose,
    )
    fmt.banner(
        "Puter AI - Agentic Coding Mode",
        [
            f"Model: {model_id}",
            f"Project: {base_dir}",
            f"Auto-approve: {'ON' if auto_approve else 'OFF'}",
            "/help for commands, !cmd to run shell commands",
        ],
    )
    repl_loop(session)


def agent_command(
    prompt: str,
    *,
    model: str | None = None,
    project: str | None = None,
    auto_approve: bool = False,
    max_iterations: int = MAX_ITERATIONS,
    llm_kwargs: dict | None = None,
    system_prompt: str | None = None,
    verbose: bool = True,
    reader=None,
) -> LoopResult:
    """The `do` command: run one task and print its final answer once."""
    from .session import AgentSession

    base_dir = _resolve_project(project)
    model_id = model or DEFAULT_AGENT_MODEL
    if verbose:
        fmt.model_info(f"Model: {model_id}")
        fmt.model_info(f"Project: {base_dir}")

    session = AgentSession(
        base_dir,
        model_id,
        auto_approve=auto_approve,
        max_iterations=max_iterations,
        llm_kwargs=llm_kwargs,
        system_prompt=system_prompt,
        verbose=verbose,
        reader=reader,
    )
    result = session.run_task(prompt)
    if result.answer:
        fmt.answer(result.answer)
    return result
