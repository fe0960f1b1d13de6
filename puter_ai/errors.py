"""Exception types shared across puter-ai."""


class AgentError(Exception):
    """Raised by the agent loop or setup helpers for reportable runtime failures."""


class ConfigError(AgentError):
    """Raised for invalid configuration (bad TOML, wrong value types, ...)."""


class AuthError(ConfigError):
    """Raised when no auth token is available."""


class ProviderError(AgentError):
    """Raised when the model provider call fails."""


class RateLimitError(ProviderError):
    """Raised when the provider rejects a call because of rate limiting."""


class AgentBusyError(AgentError):
    """Raised when a task is submitted while another agent loop is running."""


class InputBusyError(AgentError):
    """Raised when the input stream is read by someone who doesn't hold it."""
