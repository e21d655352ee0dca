"""Structured error types for the agent runtime."""


class AgentError(Exception):
    """Base error for all agent operations."""
    pass


class ConfigError(AgentError):
    """Invalid configuration. Fatal at startup."""
    pass


class BackendError(AgentError):
    """The model backend failed to produce a response."""
    pass


class ConversationError(AgentError):
    """Raised when an append would break user/assistant alternation."""
    pass


class ToolError(AgentError):
    """Unexpected fault inside a tool, reported to the model as its result."""

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        super().__init__(f"{tool_name} failed: {message}")


class ToolValidationError(AgentError):
    """Tool input rejected before any side effect."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ScriptTimeoutError(AgentError):
    """Raised when a script exceeds its wall-clock timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Script timed out after {timeout:g}s")
