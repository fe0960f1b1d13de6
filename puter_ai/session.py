"""AgentSession: the state of one interactive agent session."""

import threading
from pathlib import Path

from .agent import MAX_ITERATIONS, LoopResult, build_system_prompt, clear_history, run_agent_loop
from .errors import AgentBusyError
from .permissions import InputArbiter, PermissionGate


class AgentSession:
    """Owns the conversation history, the input arbiter and the permission gate.

    At most one agent loop runs per session at a time.
    """

    def __init__(
        self,
        base_dir: str,
        model_id: str,
        *,
        auto_approve: bool = False,
        max_iterations: int = MAX_ITERATIONS,
        llm_kwargs: dict | None = None,
        system_prompt: str | None = None,
        verbose: bool = True,
        reader=None,
    ):
        self.base_dir = str(Path(base_dir).resolve())
        self.model_id = model_id
        self.max_iterations = max_iterations
        self.llm_kwargs = dict(llm_kwargs or {})
        self.verbose = verbose
        self.arbiter = InputArbiter()
        self.gate = PermissionGate(self.arbiter, auto_approve=auto_approve, reader=reader)
        self.messages: list[dict] = [
            {"role": "system", "content": build_system_prompt(self.base_dir, system_prompt)}
        ]
        self._running = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._running.locked()

    @property
    def auto_approve(self) -> bool:
        return self.gate.auto_approve

    def run_task(self, text: str) -> LoopResult:
        """Append a user turn and run the agent loop on it.

        Raises AgentBusyError if a loop is already running in this session.
        """
        if not self._running.acquire(blocking=False):
            raise AgentBusyError("an agent task is already running")
        try:
            self.messages.append({"role": "user", "content": text})
            return run_agent_loop(
                self.messages,
                model_id=self.model_id,
                base_dir=self.base_dir,
                max_iterations=self.max_iterations,
                gate=self.gate,
                llm_kwargs=self.llm_kwargs,
                verbose=self.verbose,
            )
        finally:
            self._running.release()

    def clear(self) -> int:
        """Drop everything but the system turn. Returns turns removed."""
        return clear_history(self.messages)

    def set_model(self, name: str) -> None:
        name = name.strip()
        if name:
            self.model_id = name

    def toggle_auto(self) -> bool:
        self.gate.auto_approve = not self.gate.auto_approve
        return self.gate.auto_approve
