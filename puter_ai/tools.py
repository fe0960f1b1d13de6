"""Tool definitions and implementations for the coding agent."""

import json
import os
import subprocess
import sys
import threading
import tomllib
from pathlib import Path

TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "read_file",
            "description": (
                "Read the contents of a file at the given path. "
                "Use this to understand existing code before making changes."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Absolute or relative file path to read.",
                    },
                },
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "write_file",
            "description": (
                "Create or overwrite a file with the given content. "
                "Use this to create new files or completely replace existing ones."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path to write to.",
                    },
                    "content": {
                        "type": "string",
                        "description": "The full content to write to the file.",
                    },
                },
                "required": ["path", "content"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "edit_file",
            "description": (
                "Edit a file by replacing a specific target string with new content. "
                "Every occurrence of the target is replaced. Use this for surgical "
                "edits to existing files instead of rewriting the whole file."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path to edit.",
                    },
                    "target": {
                        "type": "string",
                        "description": "The exact string to find and replace (must match exactly).",
                    },
                    "replacement": {
                        "type": "string",
                        "description": "The replacement string.",
                    },
                },
                "required": ["path", "target", "replacement"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "list_directory",
            "description": (
                "List all files and directories in a path. Returns names with type "
                "indicators (/ for dirs) and file sizes. Use this to understand "
                "project structure."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "Directory path to list (default: current directory).",
                    },
                    "recursive": {
                        "type": "boolean",
                        "description": "If true, list recursively (max 3 levels deep). Default: false.",
                    },
                },
                "required": ["path"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_files",
            "description": (
                "Search for a text pattern across files in the project. Returns "
                "matching lines with file paths and line numbers. Like grep, but "
                "matches literal text."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "pattern": {
                        "type": "string",
                        "description": "Text to search for.",
                    },
                    "path": {
                        "type": "string",
                        "description": "Directory to search in (default: current directory).",
                    },
                    "file_pattern": {
                        "type": "string",
                        "description": 'Optional filename filter, e.g. "*.js" or "*.py".',
                    },
                },
                "required": ["pattern"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "run_command",
            "description": (
                "Execute a shell command and return its output. Use this to run "
                "tests, install packages, check status, etc. Commands run in the "
                "project directory with a 30 second timeout."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "command": {
                        "type": "string",
                        "description": "The shell command to execute.",
                    },
                },
                "required": ["command"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_project_info",
            "description": (
                "Get information about the current project: directory structure, "
                "package manifest, config files, git status. Call this first to "
                "understand the project."
            ),
            "parameters": {
                "type": "object",
                "properties": {},
                "required": [],
            },
        },
    },
]

# -- Risk levels --------------------------------------------------------------

SAFE = "safe"
ASK = "ask"
DANGER = "danger"

TOOL_RISK = {
    "read_file": SAFE,
    "list_directory": SAFE,
    "search_files": SAFE,
    "get_project_info": SAFE,
    "write_file": ASK,
    "edit_file": ASK,
    "run_command": DANGER,
}


def risk_for(name: str) -> str:
    """Return the risk tag for a tool. Unknown tools require approval."""
    return TOOL_RISK.get(name, ASK)


def tool_names() -> list[str]:
    return [t["function"]["name"] for t in TOOLS]


# -- Limits ---------------------------------------------------------------------

MAX_READ_LINES = 500
MAX_LIST_ENTRIES = 200
MAX_LIST_DEPTH = 3
MAX_SEARCH_RESULTS = 30
MAX_SEARCH_DEPTH = 5
COMMAND_TIMEOUT = 30  # seconds
MAX_COMMAND_OUTPUT = 1024 * 1024  # 1MB
BINARY_CHECK_BYTES = 8 * 1024  # 8 KB

LIST_SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "__pycache__",
        ".next",
        "dist",
        ".cache",
        ".gemini",
        ".vscode",
        ".idea",
        ".venv",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
        "AppData",
        "Application Data",
        "Local Settings",
        "Desktop",
        "Documents",
        "Downloads",
        "Music",
        "Pictures",
        "Videos",
        "OneDrive",
        "Contacts",
        "Favorites",
        "Links",
        "Saved Games",
        "Searches",
        "PrintHood",
        "Recent",
        "SendTo",
        "Templates",
        "NetHood",
        "coverage",
        ".nyc_output",
        ".angular",
        ".npm",
        ".yarn",
        ".nuget",
        ".dotnet",
        ".cargo",
        "vendor",
        "target",
    }
)

SEARCH_SKIP_DIRS = frozenset(
    {"node_modules", ".git", "__pycache__", ".next", "dist", ".venv"}
)

CONFIG_FILES = [
    "tsconfig.json",
    ".eslintrc.json",
    "vite.config.js",
    "next.config.js",
    "webpack.config.js",
    "Cargo.toml",
    "pyproject.toml",
    "setup.cfg",
    "requirements.txt",
    "tox.ini",
    "go.mod",
    "Makefile",
    "Dockerfile",
    ".env.example",
]


def resolve_path(path: str, base_dir: str) -> Path:
    """Resolve a tool path against the working directory.

    Absolute paths are taken as-is; there is no containment check, tools run
    with the privileges of the host process.
    """
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = Path(base_dir) / p
    return p.resolve()


def _is_skipped(name: str) -> bool:
    return name in LIST_SKIP_DIRS or name.lower().startswith("ntuser")


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


def _is_binary(path: Path) -> bool:
    with open(path, "rb") as f:
        return b"\x00" in f.read(BINARY_CHECK_BYTES)


# -- read / write / edit ----------------------------------------------------


def read_text(path: Path) -> str:
    """Read UTF-8 text without newline translation."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _write_text(path: Path, content: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _read_file(path: str, base_dir: str) -> str:
    """Read a whole text file, prefixed with its line count."""
    resolved = resolve_path(path, base_dir)
    if not resolved.exists():
        return f"error: file does not exist: {path}"
    if resolved.is_dir():
        return f"error: {path} is a directory, use list_directory instead"

    try:
        if _is_binary(resolved):
            return f"error: binary file detected: {path}"
        content = read_text(resolved)
    except UnicodeDecodeError as exc:
        return f"error: failed to decode {path} as UTF-8: {exc}"
    except OSError as exc:
        return f"error: reading {path}: {exc}"

    lines = content.split("\n")
    if len(lines) > MAX_READ_LINES:
        shown = "\n".join(lines[:MAX_READ_LINES])
        return (
            f"[{len(lines)} lines, showing first {MAX_READ_LINES}]\n{shown}\n\n"
            f"... (truncated, {len(lines) - MAX_READ_LINES} more lines)"
        )
    return f"[{len(lines)} lines]\n{content}"


def _write_file(path: str, content: str, base_dir: str) -> str:
    """Create or overwrite a file with content."""
    resolved = resolve_path(path, base_dir)
    try:
        resolved.parent.mkdir(parents=True, exist_ok=True)
        data = content.encode("utf-8")
        resolved.write_bytes(data)
    except OSError as exc:
        return f"error: writing {path}: {exc}"
    return f"Wrote {len(data)} bytes to {path}"


def _edit_file(path: str, target: str, replacement: str, base_dir: str) -> str:
    """Replace every occurrence of target with replacement in an existing file."""
    resolved = resolve_path(path, base_dir)
    if not resolved.exists():
        return f"error: file does not exist: {path}"
    if not target:
        return "error: target must not be empty"

    try:
        content = read_text(resolved)
    except (UnicodeDecodeError, OSError) as exc:
        return f"error: reading {path}: {exc}"

    count = content.count(target)
    if count == 0:
        return (
            f"error: target string not found in {path}. "
            "Make sure it matches the file content exactly (read the file first)."
        )

    try:
        _write_text(resolved, content.replace(target, replacement))
    except OSError as exc:
        return f"error: writing {path}: {exc}"
    noun = "occurrence" if count == 1 else "occurrences"
    return f"Edited {path} ({count} {noun} replaced)"


# -- list_directory -----------------------------------------------------------


class _DirectoryLister:
    """Depth-first listing bounded by depth and a global entry cap."""

    def __init__(self, max_depth: int, max_entries: int = MAX_LIST_ENTRIES):
        self.max_depth = max_depth
        self.max_entries = max_entries
        self.count = 0
        self.capped = False
        self.lines: list[str] = []

    def walk(self, directory: Path, depth: int = 1, prefix: str = "") -> None:
        if depth > self.max_depth or self.capped:
            return
        try:
            entries = list(os.scandir(directory))
        except OSError as exc:
            self.lines.append(f"{prefix}[error: {exc.strerror or exc}]")
            return

        def sort_key(entry):
            return (not _entry_is_dir(entry), entry.name.lower(), entry.name)

        for entry in sorted(entries, key=sort_key):
            if self.count >= self.max_entries:
                self.lines.append(f"... (capped at {self.max_entries} entries)")
                self.capped = True
                return

            if _is_skipped(entry.name):
                self.lines.append(f"{prefix}{entry.name}/ [skipped]")
                self.count += 1
                continue

            if _entry_is_dir(entry):
                self.lines.append(f"{prefix}{entry.name}/")
                self.count += 1
                self.walk(Path(entry.path), depth + 1, prefix + "  ")
                if self.capped:
                    return
            else:
                try:
                    size = entry.stat().st_size
                    self.lines.append(f"{prefix}{entry.name} ({format_size(size)})")
                except OSError:
                    self.lines.append(f"{prefix}{entry.name}")
                self.count += 1


def _entry_is_dir(entry: os.DirEntry) -> bool:
    try:
        return entry.is_dir()
    except OSError:
        return False


def _list_directory(path: str, base_dir: str, recursive: bool = False) -> str:
    root = resolve_path(path or ".", base_dir)
    if not root.exists():
        return f"error: path does not exist: {path}"
    if not root.is_dir():
        return f"error: path is not a directory: {path}"

    lister = _DirectoryLister(MAX_LIST_DEPTH if recursive else 1)
    lister.walk(root)
    return "\n".join(lister.lines) or "(empty directory)"


# -- search_files -------------------------------------------------------------


def _matches_file_pattern(filename: str, file_pattern: str | None) -> bool:
    if not file_pattern:
        return True
    suffix = file_pattern.replace("*", "", 1)
    return filename.endswith(suffix) or os.path.splitext(filename)[1] == suffix


def _search_files(
    pattern: str,
    base_dir: str,
    path: str = ".",
    file_pattern: str | None = None,
) -> str:
    """Literal substring search across files under path."""
    if not pattern:
        return "error: pattern must not be empty"
    root = resolve_path(path or ".", base_dir)
    if not root.exists():
        return f"error: path does not exist: {path}"
    if not root.is_dir():
        return f"error: path is not a directory: {path}"

    base = Path(base_dir).resolve()
    results: list[str] = []

    def search_in_file(filepath: Path) -> None:
        try:
            if _is_binary(filepath):
                return
            text = filepath.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            return
        try:
            rel = filepath.relative_to(base).as_posix()
        except ValueError:
            rel = str(filepath)
        for line_no, line in enumerate(text.split("\n"), start=1):
            if pattern in line:
                results.append(f"{rel}:{line_no}: {line.strip()}")
                if len(results) >= MAX_SEARCH_RESULTS:
                    return

    def walk(directory: Path, depth: int) -> None:
        if depth > MAX_SEARCH_DEPTH or len(results) >= MAX_SEARCH_RESULTS:
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            if len(results) >= MAX_SEARCH_RESULTS:
                return
            if entry.name in SEARCH_SKIP_DIRS:
                continue
            if _entry_is_dir(entry):
                walk(Path(entry.path), depth + 1)
            elif _matches_file_pattern(entry.name, file_pattern):
                search_in_file(Path(entry.path))

    walk(root, 0)

    if not results:
        return "No matches found."
    output = "\n".join(results)
    if len(results) >= MAX_SEARCH_RESULTS:
        output += f"\n... (capped at {MAX_SEARCH_RESULTS} results)"
    return output


# -- run_command --------------------------------------------------------------

_KILL_WAIT_TIMEOUT = 5  # seconds to wait for process to die after kill signals


def _kill_process_tree(proc: subprocess.Popen) -> None:
    """Kill a process and its descendants, then wait for exit.

    On Unix, uses process groups (via start_new_session=True) to kill the
    entire tree. On Windows, uses taskkill /T /F to kill the process tree.
    """
    if sys.platform != "win32":
        import signal

        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except OSError:
            pass  # already exited
    else:
        try:
            subprocess.run(
                ["taskkill", "/T", "/F", "/PID", str(proc.pid)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired):
            pass  # best-effort
    try:
        proc.kill()
    except OSError:
        pass  # already dead
    try:
        proc.wait(timeout=_KILL_WAIT_TIMEOUT)
    except subprocess.TimeoutExpired:
        pass  # give up, process is unkillable


def _capture_process(proc: subprocess.Popen, timeout: int) -> tuple[str, int | None, bool, bool]:
    """Drain a running subprocess with timeout enforcement.

    Returns (output, returncode, timed_out, truncated).
    """
    output_chunks: list[bytes] = []
    output_total = 0
    output_truncated = False

    def _reader():
        nonlocal output_total, output_truncated
        try:
            while True:
                chunk = proc.stdout.read(4096)
                if not chunk:
                    break
                if output_truncated:
                    continue  # keep draining to prevent pipe backpressure
                remaining = MAX_COMMAND_OUTPUT - output_total
                output_chunks.append(chunk[:remaining])
                output_total += len(output_chunks[-1])
                if output_total >= MAX_COMMAND_OUTPUT:
                    output_truncated = True
        except (OSError, ValueError):
            pass  # pipe closed/broken after kill

    reader_thread = threading.Thread(target=_reader, daemon=True)
    reader_thread.start()

    timed_out = False
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        _kill_process_tree(proc)

    reader_thread.join(timeout=2)
    proc.stdout.close()

    output = b"".join(output_chunks).decode("utf-8", errors="replace")
    return output, proc.returncode, timed_out, output_truncated


def run_shell(
    command: str, base_dir: str, timeout: int = COMMAND_TIMEOUT
) -> tuple[str, int | None, bool, bool]:
    """Run a shell string in base_dir.

    Returns (output, returncode, timed_out, truncated). stderr is merged into
    stdout. Raises OSError if the shell can't be started.
    """
    if sys.platform == "win32":
        shell_cmd = ["cmd.exe", "/c", command]
    else:
        shell_cmd = ["/bin/sh", "-c", command]

    popen_kwargs: dict = dict(
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        stdin=subprocess.DEVNULL,
        cwd=base_dir,
    )
    if sys.platform != "win32":
        popen_kwargs["start_new_session"] = True

    proc = subprocess.Popen(shell_cmd, **popen_kwargs)
    return _capture_process(proc, timeout)


def _run_command(command: str, base_dir: str, timeout: int = COMMAND_TIMEOUT) -> str:
    if not isinstance(command, str) or not command.strip():
        return "error: command must be a non-empty string"
    base_path = Path(base_dir)
    if not base_path.is_dir():
        return f"error: working directory does not exist: {base_dir}"

    try:
        output, returncode, timed_out, truncated = run_shell(command, base_dir, timeout)
    except OSError as e:
        return f"error: failed to start shell command: {e}"

    parts: list[str] = []
    if timed_out:
        parts.append(f"error: command timed out after {timeout}s")
    elif returncode != 0:
        parts.append(f"Command exited with code {returncode}")
    if output.strip():
        parts.append(output.rstrip())
    if truncated:
        parts.append("[output truncated at 1MB]")

    if not parts:
        return "(command completed with no output)"
    return "\n".join(parts)


# -- get_project_info ---------------------------------------------------------


def _package_json_summary(project: Path) -> list[str] | None:
    try:
        pkg = json.loads((project / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(pkg, dict):
        return None
    lines = ["", "── package.json ──"]
    lines.append(f"Name: {pkg.get('name') or 'N/A'}")
    lines.append(f"Version: {pkg.get('version') or 'N/A'}")
    if pkg.get("description"):
        lines.append(f"Description: {pkg['description']}")
    for key, label in (
        ("scripts", "Scripts"),
        ("dependencies", "Dependencies"),
        ("devDependencies", "Dev Dependencies"),
    ):
        if isinstance(pkg.get(key), dict) and pkg[key]:
            lines.append(f"{label}: {', '.join(pkg[key])}")
    return lines


def _pyproject_summary(project: Path) -> list[str] | None:
    try:
        with open(project / "pyproject.toml", "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return None
    meta = data.get("project")
    if not isinstance(meta, dict):
        return None
    lines = ["", "── pyproject.toml ──"]
    lines.append(f"Name: {meta.get('name') or 'N/A'}")
    lines.append(f"Version: {meta.get('version') or 'N/A'}")
    if meta.get("description"):
        lines.append(f"Description: {meta['description']}")
    if isinstance(meta.get("scripts"), dict) and meta["scripts"]:
        lines.append(f"Scripts: {', '.join(meta['scripts'])}")
    deps = meta.get("dependencies")
    if isinstance(deps, list) and deps:
        lines.append(f"Dependencies: {', '.join(deps)}")
    return lines


def _git_summary(project: Path) -> list[str] | None:
    def git(*args: str) -> str:
        proc = subprocess.run(
            ["git", *args],
            cwd=project,
            capture_output=True,
            text=True,
            timeout=10,
        )
        if proc.returncode != 0:
            raise RuntimeError(proc.stderr.strip())
        return proc.stdout.strip()

    try:
        branch = git("branch", "--show-current")
        status = git("status", "--short")
    except (OSError, RuntimeError, subprocess.TimeoutExpired):
        return None
    lines = ["", "── Git ──", f"Branch: {branch or '(detached)'}"]
    if status:
        lines.append(f"Changes:\n{status}")
    else:
        lines.append("Working tree clean")
    return lines


def _get_project_info(base_dir: str) -> str:
    project = Path(base_dir).resolve()
    info = [f"Project directory: {project}", "", "── Directory Structure ──"]
    info.append(_list_directory(".", base_dir, recursive=True))

    for section in (
        _package_json_summary(project),
        _pyproject_summary(project),
    ):
        if section:
            info.extend(section)

    found = [name for name in CONFIG_FILES if (project / name).exists()]
    if found:
        info.extend(["", "── Config Files ──", ", ".join(found)])

    git_lines = _git_summary(project)
    if git_lines:
        info.extend(git_lines)

    return "\n".join(info)


# -- Dispatch -------------------------------------------------------------------


def dispatch(name: str, args: dict, base_dir: str) -> str:
    """Route a tool call to the appropriate implementation.

    Raises:
        KeyError: If the tool name is not recognized or a required
            argument is missing.
    """
    if name == "read_file":
        return _read_file(args["path"], base_dir)
    elif name == "write_file":
        return _write_file(args["path"], args["content"], base_dir)
    elif name == "edit_file":
        return _edit_file(args["path"], args["target"], args["replacement"], base_dir)
    elif name == "list_directory":
        return _list_directory(
            args.get("path", "."), base_dir, recursive=bool(args.get("recursive"))
        )
    elif name == "search_files":
        return _search_files(
            args["pattern"],
            base_dir,
            path=args.get("path", "."),
            file_pattern=args.get("file_pattern"),
        )
    elif name == "run_command":
        return _run_command(args["command"], base_dir)
    elif name == "get_project_info":
        return _get_project_info(base_dir)
    else:
        raise KeyError(f"Unknown tool: {name!r}")


def execute(name: str, args: dict, base_dir: str) -> str:
    """Run a tool and return its textual result.

    Never raises: every failure is rendered as text starting with "error:"
    so it can be fed back to the model as a tool result.
    """
    if name not in TOOL_RISK:
        return f"error: unknown tool: {name}"
    if not isinstance(args, dict):
        return f"error: arguments for {name} must be an object"
    try:
        return dispatch(name, args, base_dir)
    except KeyError as e:
        return f"error: missing required argument {e} for {name}"
    except Exception as e:
        return f"error: {name} failed: {e}"
