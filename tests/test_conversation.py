import pytest

from skilled_agent.conversation import Conversation, Message
from skilled_agent.errors import ConversationError


def test_alternation_and_length():
    conv = Conversation()
    for i in range(3):
        conv.append_user(f"q{i}")
        conv.append_assistant(f"a{i}")

    assert len(conv) == 6
    assert conv.turns == 3
    assert [m.role for m in conv] == ["user", "assistant"] * 3


def test_must_start_with_user():
    with pytest.raises(ConversationError):
        Conversation().append_assistant("hi")


def test_rejects_consecutive_roles():
    conv = Conversation()
    conv.append_user("one")

    with pytest.raises(ConversationError):
        conv.append_user("two")

    conv.append_assistant("reply")
    with pytest.raises(ConversationError):
        conv.append_assistant("again")
    assert len(conv) == 2


def test_snapshot_is_a_copy():
    conv = Conversation()
    conv.append_user("hello")

    snap = conv.snapshot()
    snap.append({"role": "assistant", "content": "x"})
    snap[0]["content"] = "changed"

    assert conv.snapshot() == [{"role": "user", "content": "hello"}]


def test_messages_are_immutable():
    msg = Message(role="user", content="x")

    with pytest.raises(Exception):
        msg.content = "y"
    with pytest.raises(ValueError):
        Message(role="tool", content="x")
