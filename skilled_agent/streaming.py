"""Turn-scoped event channels shared by the step runner and the printers."""

import json
import queue
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Union

__all__ = [
    "ToolCallRequested",
    "ToolCallCompleted",
    "ActivityEvent",
    "TurnChannels",
    "compact",
]

PREVIEW_CHARS = 80

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ToolCallRequested:
    call_id: str
    tool_name: str
    arguments: Dict[str, Any]


@dataclass(frozen=True)
class ToolCallCompleted:
    call_id: str
    tool_name: str
    output: str


ActivityEvent = Union[ToolCallRequested, ToolCallCompleted]

_END = object()


class TurnChannels:
    """Two FIFO channels for one turn: tool activity and text tokens.

    A single producer writes both; ``close()`` ends both iterators. Each
    channel keeps its own order, there is no ordering across them.
    """

    def __init__(self):
        self._activity: "queue.Queue[Any]" = queue.Queue()
        self._tokens: "queue.Queue[Any]" = queue.Queue()
        self.closed = False

    def emit_activity(self, event: ActivityEvent) -> None:
        self._activity.put(event)

    def emit_token(self, text: str) -> None:
        if text:
            self._tokens.put(text)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._activity.put(_END)
        self._tokens.put(_END)

    @staticmethod
    def _drain(channel: "queue.Queue[Any]") -> Iterator[Any]:
        while True:
            item = channel.get()
            if item is _END:
                return
            yield item

    def activity(self) -> Iterator[ActivityEvent]:
        return self._drain(self._activity)

    def tokens(self) -> Iterator[str]:
        return self._drain(self._tokens)


def compact(value: Any, max_len: int = PREVIEW_CHARS) -> str:
    """Single-line preview: JSON for non-strings, whitespace collapsed, capped."""
    if isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = str(value)
    one_line = _WHITESPACE_RE.sub(" ", text).strip()
    if len(one_line) > max_len:
        return one_line[:max_len] + "..."
    return one_line
