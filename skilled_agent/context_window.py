"""Per-step message windowing."""

from typing import Any, Dict, List, Optional, Sequence

from .logger import get_logger

__all__ = ["ContextWindowManager", "window_messages", "drop_orphan_tool_results"]

_log = get_logger(__name__)

DEFAULT_MAX_MESSAGES = 8


def window_messages(messages: Sequence[Optional[Dict[str, Any]]],
                    limit: int = DEFAULT_MAX_MESSAGES) -> List[Dict[str, Any]]:
    """Keep the first message plus the most recent ``limit`` messages.

    Lists of ``limit`` messages or fewer pass through unchanged. This is a
    recency window, not a summary: middle turns are gone for this step.
    """
    if len(messages) <= limit:
        return list(messages)
    kept = [messages[0], *messages[-limit:]]
    return [msg for msg in kept if msg is not None]


def _tool_call_ids(msg: Dict[str, Any]) -> List[str]:
    if msg.get("role") != "assistant":
        return []
    tool_calls = msg.get("tool_calls")
    if not isinstance(tool_calls, list):
        return []
    return [tc.get("id") for tc in tool_calls if isinstance(tc, dict) and tc.get("id")]


def drop_orphan_tool_results(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Remove tool results whose assistant tool call is not in the list.

    Providers reject a tool result without its originating call, which is
    what a cut through the middle of a step leaves behind.
    """
    known: set = set()
    kept: List[Dict[str, Any]] = []
    for msg in messages:
        if msg is None:
            continue
        known.update(_tool_call_ids(msg))
        if msg.get("role") == "tool" and msg.get("tool_call_id") not in known:
            continue
        kept.append(msg)
    return kept


class ContextWindowManager:
    """Step-preparation hook run before every model inference step."""

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES):
        self.max_messages = max_messages

    def prepare_step(self, messages: Sequence[Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        windowed = window_messages(messages, self.max_messages)
        prepared = drop_orphan_tool_results(windowed)
        trimmed = len(messages) - len(prepared)
        if trimmed > 0:
            _log.debug("Context window dropped %d message(s) for this step", trimmed)
        return prepared
