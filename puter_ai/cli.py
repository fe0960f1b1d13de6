"""Command-line entry point for puter-ai."""

import argparse
import logging
import os
import sys
from importlib import metadata

from . import fmt
from .agent import agent_command, start_agent_mode
from .auth import (
    SETUP_INSTRUCTIONS,
    get_default_model,
    get_token,
    mask_token,
    require_token,
    save_token,
    set_default_model,
)
from .chat import interactive_chat, single_chat
from .config import apply_config_to_args, generate_config, global_config_dir, load_config
from .errors import AgentError
from .models import format_models_table

EXAMPLES = """\
examples:
  puter-ai code                      Start agentic coding assistant
  puter-ai do "add error handling"   One-shot agentic task
  puter-ai chat "Hello!"             Quick AI query
  puter-ai chat "Hi" --stream        Stream the response
  puter-ai interactive               Multi-turn chat
  puter-ai models                    List available models
  puter-ai auth <token>              Set auth token
  puter-ai config > puter-ai.toml    Start a project config file
"""


def _common_parser() -> argparse.ArgumentParser:
    """Options shared by every subcommand."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=None,
        help="Suppress diagnostics; only print the result.",
    )
    common.add_argument(
        "--base-url",
        default=None,
        help="Override the Puter OpenAI-compatible endpoint.",
    )
    common.add_argument(
        "--debug",
        action="store_true",
        help="Log provider traffic at debug level to stderr.",
    )
    color_group = common.add_mutually_exclusive_group()
    color_group.add_argument(
        "--color",
        action="store_true",
        default=None,
        help="Force ANSI color even when stderr is not a TTY.",
    )
    color_group.add_argument(
        "--no-color",
        action="store_true",
        default=None,
        help="Disable ANSI color even when stderr is a TTY.",
    )
    return common


def _add_model(p: argparse.ArgumentParser, help_text: str = "AI model to use.") -> None:
    p.add_argument("-m", "--model", type=str, default=None, help=help_text)


def _add_system(p: argparse.ArgumentParser) -> None:
    p.add_argument("--system", type=str, default=None, help="System prompt.")


def _add_agent_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-p",
        "--project",
        type=str,
        default=None,
        help="Project directory (default: current directory).",
    )
    p.add_argument(
        "-a",
        "--auto",
        action="store_true",
        default=None,
        help="Auto-approve file writes and shell commands.",
    )
    p.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Maximum agent loop iterations (default: 25).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="puter-ai",
        description="Agentic coding assistant and chat client for Puter AI models.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit.",
    )
    sub = parser.add_subparsers(dest="command", metavar="<command>")
    common = _common_parser()

    p = sub.add_parser("chat", parents=[common], help="Send a prompt to an AI model.")
    p.add_argument("prompt", help="The prompt to send.")
    _add_model(p)
    p.add_argument(
        "-s", "--stream", action="store_true", default=None, help="Stream the response."
    )
    p.add_argument(
        "-t", "--temperature", type=float, default=None, help="Temperature (0-2)."
    )
    p.add_argument(
        "--max-tokens", type=int, default=None, help="Maximum tokens to generate."
    )
    _add_system(p)
    p.set_defaults(handler=_cmd_chat)

    p = sub.add_parser(
        "interactive",
        aliases=["i", "repl"],
        parents=[common],
        help="Interactive multi-turn chat.",
    )
    _add_model(p)
    p.add_argument(
        "-s",
        "--stream",
        action="store_true",
        default=None,
        help="Enable streaming by default.",
    )
    _add_system(p)
    p.set_defaults(handler=_cmd_interactive)

    p = sub.add_parser("auth", parents=[common], help="Set or show your Puter auth token.")
    p.add_argument("token", nargs="?", default=None, help="Your Puter auth token.")
    p.set_defaults(handler=_cmd_auth)

    p = sub.add_parser("models", parents=[common], help="List popular AI models.")
    p.set_defaults(handler=_cmd_models)

    p = sub.add_parser("config", parents=[common], help="Print a commented config template.")
    p.set_defaults(handler=_cmd_config)

    p = sub.add_parser("set-model", parents=[common], help="Set the default chat model.")
    p.add_argument("model_id", metavar="model", help="Model ID to set as default.")
    p.set_defaults(handler=_cmd_set_model)

    p = sub.add_parser(
        "code",
        aliases=["agent", "c"],
        parents=[common],
        help="Start the agentic coding assistant.",
    )
    _add_model(p, "AI model to use (skips the picker).")
    _add_agent_options(p)
    _add_system(p)
    p.set_defaults(handler=_cmd_code)

    p = sub.add_parser("do", parents=[common], help="Run a one-shot agentic task.")
    p.add_argument("prompt", help="The task to perform.")
    _add_model(p)
    _add_agent_options(p)
    _add_system(p)
    p.set_defaults(handler=_cmd_do)

    return parser


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _llm_kwargs(args) -> dict:
    return {
        "api_key": require_token(),
        "base_url": args.base_url,
        "temperature": args.temperature,
        "max_tokens": args.max_tokens,
    }


def _cmd_chat(args) -> int:
    single_chat(
        args.prompt,
        model=args.model or get_default_model(),
        stream=args.stream,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        system=args.system,
        api_key=require_token(),
        base_url=args.base_url,
        verbose=not args.quiet,
    )
    return 0


def _cmd_interactive(args) -> int:
    interactive_chat(
        model=args.model or get_default_model(),
        stream=args.stream,
        system=args.system,
        api_key=require_token(),
        base_url=args.base_url,
    )
    return 0


def _cmd_auth(args) -> int:
    if args.token:
        save_token(args.token)
        fmt.success("Auth token saved successfully!")
        return 0
    current = get_token()
    if current:
        fmt.success("Auth token is configured")
        fmt.info(f"Token: {mask_token(current)}")
    else:
        fmt.warning("No auth token configured.")
        for line in SETUP_INSTRUCTIONS.splitlines()[1:]:
            fmt.info(line)
    return 0


def _cmd_models(args) -> int:
    fmt.banner("Available AI Models (Popular Picks)", [])
    fmt.plain(format_models_table())
    fmt.info("")
    fmt.info(
        "500+ models available. Use any model ID with: "
        'puter-ai chat "prompt" -m <model-id>'
    )
    fmt.info("Full list: https://developer.puter.com/ai/models/")
    return 0


def _cmd_set_model(args) -> int:
    set_default_model(args.model_id)
    fmt.success(f"Default model set to: {args.model_id}")
    return 0


def _cmd_config(args) -> int:
    fmt.plain(generate_config())
    fmt.info(f"Global config: {global_config_dir() / 'config.toml'}")
    return 0


def _cmd_code(args) -> int:
    start_agent_mode(
        model=args.model,
        project=args.project,
        auto_approve=args.auto,
        max_iterations=args.max_iterations,
        llm_kwargs=_llm_kwargs(args),
        system_prompt=args.system,
        verbose=not args.quiet,
    )
    return 0


def _cmd_do(args) -> int:
    result = agent_command(
        args.prompt,
        model=args.model,
        project=args.project,
        auto_approve=args.auto,
        max_iterations=args.max_iterations,
        llm_kwargs=_llm_kwargs(args),
        system_prompt=args.system,
        verbose=not args.quiet,
    )
    return 1 if result.error else 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        try:
            version = metadata.version("puter-ai")
        except metadata.PackageNotFoundError:
            version = "unknown"
        print(version)
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )

    try:
        config = load_config(getattr(args, "project", None) or os.getcwd())
        apply_config_to_args(args, config)
        fmt.init(color=args.color, no_color=args.no_color)
        code = args.handler(args)
    except AgentError as e:
        fmt.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        print(file=sys.stderr)
        sys.exit(130)

    sys.exit(code)


if __name__ == "__main__":
    main()
