"""Plain chat: the `chat` and `interactive` commands."""

from . import fmt
from . import provider
from .config import global_config_dir
from .errors import ProviderError
from .normalize import extract_text


def send(messages: list, *, model: str, stream: bool = False, label: str = "", **options) -> str:
    """Send one chat request and render the reply. Returns the reply text.

    options are passed through to provider.chat (api_key, base_url,
    temperature, max_tokens).
    """
    if stream:
        chunks = provider.chat(messages, model=model, stream=True, **options)
        parts = []
        fmt.stream_start(label)
        try:
            for text in chunks:
                fmt.stream_chunk(text)
                parts.append(text)
        finally:
            fmt.stream_end()
        return "".join(parts)

    with fmt.llm_spinner():
        response = provider.chat(messages, model=model, **options)
    text = extract_text(response)
    fmt.answer(text)
    return text


def single_chat(
    prompt: str,
    *,
    model: str,
    stream: bool = False,
    temperature: float | None = None,
    max_tokens: int | None = None,
    system: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    verbose: bool = True,
) -> str:
    """Send a single prompt and print the reply."""
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    if verbose:
        fmt.model_info(f"Model: {model}")
    return send(
        messages,
        model=model,
        stream=stream,
        api_key=api_key,
        base_url=base_url,
        temperature=temperature,
        max_tokens=max_tokens,
    )


_CHAT_COMMANDS = [
    ("/quit", "Exit (also /exit, /q)"),
    ("/clear", "Clear conversation history"),
    ("/model <m>", "Switch model"),
    ("/stream", "Toggle streaming mode"),
    ("/help", "Show this help"),
]


class ChatSession:
    """Multi-turn chat state: history, current model and streaming mode."""

    def __init__(self, model: str, *, stream=False, system=None, options=None):
        self.model = model
        self.stream = stream
        self.system = system
        self.options = dict(options or {})
        self.messages: list[dict] = []
        self.clear()

    def clear(self) -> None:
        self.messages[:] = []
        if self.system:
            self.messages.append({"role": "system", "content": self.system})

    def handle_line(self, line: str) -> bool:
        """Handle one line of input. Returns False when the chat should end."""
        line = line.strip()
        if not line:
            return True

        if line in ("/quit", "/exit", "/q"):
            fmt.info("Goodbye!")
            return False

        cmd, _, arg = line.partition(" ")
        if cmd == "/help":
            fmt.help_table(_CHAT_COMMANDS)
            return True
        if cmd == "/clear":
            self.clear()
            fmt.notice("Conversation cleared.")
            return True
        if cmd == "/model":
            if arg.strip():
                self.model = arg.strip()
                fmt.notice(f"Switched to model: {self.model}")
            else:
                fmt.info(f"Current model: {self.model}")
            return True
        if cmd == "/stream":
            self.stream = not self.stream
            fmt.notice(f"Streaming: {'ON' if self.stream else 'OFF'}")
            return True

        self.messages.append({"role": "user", "content": line})
        try:
            text = send(
                self.messages,
                model=self.model,
                stream=self.stream,
                label="AI > ",
                **self.options,
            )
        except ProviderError as e:
            # Keep history consistent for the next request
            self.messages.pop()
            fmt.error(str(e))
            return True
        self.messages.append({"role": "assistant", "content": text})
        return True


def interactive_chat(
    *,
    model: str,
    stream: bool = False,
    system: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> None:
    """Multi-turn chat REPL with conversation history."""
    from prompt_toolkit import PromptSession
    from prompt_toolkit.formatted_text import FormattedText
    from prompt_toolkit.history import FileHistory

    chat = ChatSession(
        model,
        stream=stream,
        system=system,
        options={"api_key": api_key, "base_url": base_url},
    )

    history_path = global_config_dir() / "chat_history"
    history_path.parent.mkdir(parents=True, exist_ok=True)
    prompt_session = PromptSession(
        history=FileHistory(str(history_path)),
        enable_history_search=True,
    )
    prompt_text = FormattedText([("bold fg:ansigreen", "  You > ")])

    fmt.banner(
        "Puter AI - Interactive Chat Mode",
        [f"Model: {model}", "Type your message and press Enter. /help for commands."],
    )

    while True:
        try:
            line = prompt_session.prompt(prompt_text)
        except (EOFError, KeyboardInterrupt):
            break
        try:
            if not chat.handle_line(line):
                break
        except KeyboardInterrupt:
            fmt.warning("interrupted, reply aborted.")
