"""Human approval of risky tool calls.

A tool call whose risk is not ``safe`` goes through :class:`PermissionGate`
unless auto-approve is on. The gate previews the effect of the call, then asks
a single question on the terminal. Answers are read case-insensitively:

* empty, ``y``, ``yes``  -> allow
* ``n``, ``no``          -> deny
* ``s``, ``skip``        -> skip
* anything else          -> allow

The last rule is a deliberate fail-open policy: the user has just been shown a
risk-labelled question with ``Y`` as the advertised default. EOF or Ctrl-C at
the question denies.

Only one reader may own the terminal at a time. :class:`InputArbiter` hands
the input handle from the REPL prompt to the approval question and back.
"""

import difflib
import threading
from contextlib import contextmanager
from enum import Enum

from . import fmt
from .errors import InputBusyError
from .normalize import ToolCall
from .tools import SAFE, read_text, resolve_path

DENIED_RESULT = "Operation denied by user."
SKIPPED_RESULT = "Operation skipped by user."

NEW_FILE_PREVIEW_LINES = 15


class Decision(Enum):
    ALLOW = "allow"
    DENY = "deny"
    SKIP = "skip"


def parse_decision(answer: str | None) -> Decision:
    """Interpret one line of user input as an approval decision."""
    value = (answer or "").strip().lower()
    if value in ("n", "no"):
        return Decision.DENY
    if value in ("s", "skip"):
        return Decision.SKIP
    return Decision.ALLOW


def refusal_result(decision: Decision) -> str | None:
    """Return the tool result reported to the model for a refusal, or None."""
    if decision is Decision.DENY:
        return DENIED_RESULT
    if decision is Decision.SKIP:
        return SKIPPED_RESULT
    return None


class InputArbiter:
    """Single-owner handle on the interactive input stream.

    Owners form a stack: acquiring suspends the current owner, releasing
    resumes it. Only the owner on top may read.
    """

    def __init__(self):
        self._owners: list[str] = []
        self._lock = threading.Lock()

    @property
    def owner(self) -> str | None:
        return self._owners[-1] if self._owners else None

    @property
    def suspended(self) -> list[str]:
        return list(self._owners[:-1])

    @contextmanager
    def hold(self, owner: str):
        with self._lock:
            if owner in self._owners:
                raise InputBusyError(f"input is already held by {owner!r}")
            self._owners.append(owner)
        try:
            yield self
        finally:
            with self._lock:
                self._owners.remove(owner)

    def read(self, owner: str, read_fn, *args, **kwargs) -> str:
        """Read a line with read_fn on behalf of owner."""
        if self.owner != owner:
            raise InputBusyError(
                f"{owner!r} tried to read input while {self.owner!r} holds it"
            )
        return read_fn(*args, **kwargs)


def prompt_toolkit_reader(message) -> str:
    from prompt_toolkit import prompt
    from prompt_toolkit.formatted_text import FormattedText

    return prompt(FormattedText(message))


# -- Previews -----------------------------------------------------------------


def write_preview_lines(old: str, new: str, path: str) -> list[str]:
    """Unified diff between the current and the proposed content."""
    diff = difflib.unified_diff(
        old.splitlines(),
        new.splitlines(),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    )
    return list(diff)


def preview(tool_call: ToolCall, base_dir: str) -> None:
    """Render what a risky tool call is about to do."""
    args = tool_call.arguments
    if tool_call.name == "write_file" and isinstance(args.get("content"), str):
        path = str(args.get("path", ""))
        content = args["content"]
        existing = None
        try:
            existing = read_text(resolve_path(path, base_dir))
        except UnicodeDecodeError:
            fmt.notice("(existing non-text file will be overwritten)")
            return
        except (OSError, ValueError):
            pass
        if existing is not None:
            lines = write_preview_lines(existing, content, path)
            if lines:
                fmt.diff(lines)
            else:
                fmt.info("(no changes)")
        else:
            new_lines = content.split("\n")
            fmt.new_file_preview(
                new_lines[:NEW_FILE_PREVIEW_LINES],
                len(new_lines) - NEW_FILE_PREVIEW_LINES,
            )
    elif tool_call.name == "edit_file" and args.get("target"):
        fmt.edit_preview(str(args["target"]), str(args.get("replacement") or ""))
    elif tool_call.name == "run_command" and args.get("command"):
        fmt.command_preview(str(args["command"]))


class PermissionGate:
    """Obtains a human decision for risky tool calls."""

    OWNER = "permission"

    def __init__(self, arbiter: InputArbiter | None = None, *, auto_approve=False, reader=None):
        self.arbiter = arbiter or InputArbiter()
        self.auto_approve = auto_approve
        self.reader = reader or prompt_toolkit_reader

    def needs_approval(self, risk: str) -> bool:
        return risk != SAFE and not self.auto_approve

    def request(self, tool_call: ToolCall, risk: str, base_dir: str) -> Decision:
        """Preview the call, ask the user and return the decision."""
        preview(tool_call, base_dir)
        question = fmt.permission_question(risk)
        with self.arbiter.hold(self.OWNER):
            try:
                answer = self.arbiter.read(self.OWNER, self.reader, question)
            except (EOFError, KeyboardInterrupt):
                fmt.decision("denied")
                return Decision.DENY
        decision = parse_decision(answer)
        if decision is not Decision.ALLOW:
            fmt.decision("denied" if decision is Decision.DENY else "skipped")
        return decision
