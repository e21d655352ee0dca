"""Conversation state: the ordered user/assistant log of one process."""

from dataclasses import dataclass
from typing import Dict, Iterator, List

from .errors import ConversationError

__all__ = ["Message", "Conversation", "USER", "ASSISTANT", "SYSTEM"]

USER = "user"
ASSISTANT = "assistant"
SYSTEM = "system"
ROLES = {USER, ASSISTANT, SYSTEM}


@dataclass(frozen=True)
class Message:
    role: str
    content: str = ""

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class Conversation:
    """Single-writer message log.

    Turns strictly alternate, starting with ``user``: one user message at
    turn start, one assistant message at turn end. Storage is never
    truncated; windowing happens on the copy sent to the model.
    """

    def __init__(self):
        self._messages: List[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    @property
    def last(self):
        return self._messages[-1] if self._messages else None

    @property
    def turns(self) -> int:
        """Number of completed user/assistant pairs."""
        return sum(1 for m in self._messages if m.role == ASSISTANT)

    def _expected_role(self) -> str:
        if not self._messages or self._messages[-1].role == ASSISTANT:
            return USER
        return ASSISTANT

    def _append(self, role: str, content: str) -> Message:
        expected = self._expected_role()
        if role != expected:
            raise ConversationError(
                f"Cannot append a {role} message; expected {expected}"
            )
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def append_user(self, content: str) -> Message:
        return self._append(USER, content)

    def append_assistant(self, content: str) -> Message:
        return self._append(ASSISTANT, content)

    def snapshot(self) -> List[Dict[str, str]]:
        """Copy of the log in model-request form."""
        return [m.to_dict() for m in self._messages]
