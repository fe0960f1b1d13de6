"""ANSI-formatted terminal output using Rich.

Diagnostics go to stderr; answers go to stdout so they can be piped.
"""

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.rule import Rule
from rich.text import Text

_console = Console(stderr=True)
_out = Console()


def init(*, color: bool = False, no_color: bool = False) -> None:
    """Reconfigure the module-level consoles from CLI flags.

    Call once at startup, before any output.
    """
    global _console, _out
    kwargs: dict = {}
    if color:
        kwargs["force_terminal"] = True
        kwargs["no_color"] = False
    if no_color:
        kwargs["no_color"] = True
    _console = Console(stderr=True, **kwargs)
    _out = Console(**kwargs)


# -- Loop structure ----------------------------------------------------------


def step_header(n: int, max_n: int, token_est: int) -> None:
    title = f"Step {n}/{max_n} (~{token_est} tokens)"
    _console.print(Rule(title, style="cyan"))


def llm_spinner(label: str = "Thinking..."):
    """Return a Rich Status context manager that spins on stderr."""
    return _console.status(f"  {label}", spinner="dots")


def llm_timing(elapsed: float, tool_calls: int) -> None:
    text = Text()
    text.append(f"  Model responded in {elapsed:.1f}s", style="green")
    if tool_calls:
        text.append(f"  tool_calls={tool_calls}", style="green")
    _console.print(text)


def completion(steps: int) -> None:
    _console.print(Text(f"  ✓ Agent finished: {steps} steps", style="bold green"))


# -- Tool calls --------------------------------------------------------------


def tool_call(name: str, detail: str = "", *, risky: bool = False) -> None:
    line = Text()
    if risky:
        line.append(f"\n  > {name}", style="bold yellow")
        if detail:
            line.append(f": {detail}", style="white")
    else:
        line.append(f"  > {name}", style="dim")
        if detail:
            line.append(f": {detail}", style="dim")
    _console.print(line)


def tool_output(lines: list[str], remaining: int = 0) -> None:
    for line in lines:
        _console.print(Text(f"    {line}", style="dim"))
    if remaining > 0:
        _console.print(Text(f"    ... (+{remaining} more lines)", style="dim"))


def tool_done() -> None:
    _console.print(Text("    done", style="green"))


def exit_status(code: int | None) -> None:
    if code == 0:
        _console.print(Text("  exit code 0", style="green"))
    else:
        _console.print(Text(f"  exit code {code}", style="red"))


def tool_error(name: str, msg: str) -> None:
    header = Text()
    header.append(f"  ✗ {name}", style="bold red")
    header.append(f"  {msg}", style="red")
    _console.print(header)


# -- Permission previews -----------------------------------------------------


def diff(lines: list[str]) -> None:
    for line in lines:
        if line.startswith(("+++", "---")):
            style = "dim"
        elif line.startswith("@@"):
            style = "cyan"
        elif line.startswith("+"):
            style = "green"
        elif line.startswith("-"):
            style = "red"
        else:
            style = "dim"
        _console.print(Text(f"  {line}", style=style))


def new_file_preview(lines: list[str], remaining: int) -> None:
    _console.print(Text("  (new file)", style="dim"))
    for line in lines:
        _console.print(Text(f"  + {line}", style="green"))
    if remaining > 0:
        _console.print(Text(f"  ... (+{remaining} more lines)", style="dim"))


def edit_preview(target: str, replacement: str) -> None:
    for line in target.split("\n"):
        _console.print(Text(f"  - {line}", style="red"))
    for line in replacement.split("\n"):
        _console.print(Text(f"  + {line}", style="green"))


def command_preview(command: str) -> None:
    line = Text()
    line.append("  $ ", style="dim")
    line.append(command, style="white")
    _console.print(line)


def permission_question(risk: str) -> list[tuple[str, str]]:
    """Return prompt_toolkit formatted text for the approval question."""
    if risk == "danger":
        label = ("bold fg:ansired", "[DANGER]")
    else:
        label = ("bold fg:ansiyellow", "[WRITE]")
    return [("", "  "), label, ("", " Allow? [Y/n/skip] ")]


def decision(outcome: str) -> None:
    _console.print(Text(f"    {outcome}", style="yellow"))


# -- Assistant text ----------------------------------------------------------


def assistant_text(text: str) -> None:
    line = Text()
    line.append("\n  AI: ", style="cyan")
    line.append(text, style="dim")
    _console.print(line)


def answer(text: str) -> None:
    """Render a final answer as markdown on stdout."""
    _out.print()
    _out.print(Markdown(text))
    _out.print()


def stream_start(label: str = "") -> None:
    _out.print(Text(label, style="cyan"), end="")


def stream_chunk(text: str) -> None:
    _out.print(text, end="", markup=False, highlight=False, soft_wrap=True)


def stream_end() -> None:
    _out.print()
    _out.print()


def plain(text: str = "") -> None:
    """Print text to stdout without markup processing."""
    _out.print(text, markup=False, highlight=False)


# -- Diagnostics -------------------------------------------------------------


def model_info(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="dim"))


def info(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="dim"))


def success(msg: str) -> None:
    _console.print(Text(f"  ✓ {msg}", style="green"))


def notice(msg: str) -> None:
    _console.print(Text(f"  {msg}", style="yellow"))


def warning(msg: str) -> None:
    line = Text()
    line.append("  ⚠ Warning: ", style="yellow")
    line.append(msg, style="yellow")
    _console.print(line)


def error(msg: str) -> None:
    line = Text()
    line.append("Error: ", style="bold red")
    line.append(msg, style="red")
    _console.print(line)


def banner(title: str, details: list[str]) -> None:
    _console.print(Rule(f"[bold white]{escape(title)}[/bold white]", style="cyan"))
    for detail in details:
        _console.print(Text(f"  {detail}", style="dim"))
    _console.print()


def model_menu(rows: list[tuple[str, str, str]], default: str) -> None:
    """Numbered model list for the picker; rows are (id, label, description)."""
    _console.print(Text("\n  Select a model:\n", style="bold cyan"))
    for i, (model_id, label, desc) in enumerate(rows, 1):
        line = Text()
        line.append(" *" if model_id == default else "  ", style="green")
        line.append(f"  [{i}]", style="cyan")
        line.append(f" {label.ljust(22)} ", style="white")
        line.append(desc, style="dim")
        _console.print(line)
    _console.print(Text('\n  Or type a custom model ID (e.g. "qwen-max")', style="dim"))
    _console.print(Text(f"  Press Enter for default: {default}\n", style="dim"))


def help_table(rows: list[tuple[str, str]], title: str = "Commands:") -> None:
    _console.print(Text(f"\n  {title}", style="bold"))
    width = max(len(cmd) for cmd, _ in rows) + 2
    for cmd, desc in rows:
        line = Text()
        line.append(f"    {cmd.ljust(width)}", style="white")
        line.append(desc, style="dim")
        _console.print(line)
    _console.print()
