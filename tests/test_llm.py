from types import SimpleNamespace
from unittest.mock import patch

import pytest

from skilled_agent.config import Config
from skilled_agent.errors import BackendError, ConfigError
from skilled_agent.llm import LLMAdapter, build_system_prompt, create_llm


def _chunk(content=None, tool_calls=None, finish_reason=None, usage=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)],
        usage=usage,
    )


def _tc_delta(index, id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index, id=id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def test_stream_yields_text_then_done():
    chunks = [_chunk("Hel"), _chunk("lo"), _chunk(finish_reason="stop",
                                                  usage=SimpleNamespace(prompt_tokens=3,
                                                                        completion_tokens=2,
                                                                        total_tokens=5))]
    adapter = LLMAdapter(model="anthropic/claude-haiku-4-5")

    with patch("skilled_agent.llm.litellm.completion", return_value=iter(chunks)) as completion:
        events = list(adapter.chat_stream([{"role": "user", "content": "hi"}], tools=[{"x": 1}]))

    assert events[:2] == [("text", "Hel"), ("text", "lo")]
    kind, response = events[-1]
    assert kind == "done"
    assert response.content == "Hello"
    assert response.finish_reason == "stop"
    assert response.usage["total_tokens"] == 5
    kwargs = completion.call_args.kwargs
    assert kwargs["stream"] is True
    assert kwargs["tool_choice"] == "auto"


def test_tool_call_fragments_are_assembled():
    chunks = [
        _chunk(tool_calls=[_tc_delta(0, id="toolu_1", name="read_file", arguments='{"file_')]),
        _chunk(tool_calls=[_tc_delta(0, arguments='path": "/tmp/a"}')]),
        _chunk(tool_calls=[_tc_delta(1, name="list_directory", arguments="not json")]),
        _chunk(finish_reason="tool_calls"),
    ]
    adapter = LLMAdapter(model="ollama_chat/ministral-3:8b")

    with patch("skilled_agent.llm.litellm.completion", return_value=iter(chunks)):
        events = list(adapter.chat_stream([]))

    assert [e[0] for e in events] == ["done"]
    response = events[0][1]
    assert response.content is None
    first, second = response.tool_calls
    assert (first.id, first.name, first.arguments) == ("toolu_1", "read_file", {"file_path": "/tmp/a"})
    assert (second.id, second.name, second.arguments) == ("call_1", "list_directory", {"_raw": "not json"})


def test_falls_back_to_non_streaming():
    message = SimpleNamespace(content="plain answer", tool_calls=None)
    full = SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")], usage=None)
    calls = []

    def fake_completion(**kwargs):
        calls.append(kwargs)
        if kwargs.get("stream"):
            raise RuntimeError("streaming not supported")
        return full

    adapter = LLMAdapter(model="ollama_chat/x")
    with patch("skilled_agent.llm.litellm.completion", side_effect=fake_completion):
        events = list(adapter.chat_stream([]))

    assert events[0] == ("text", "plain answer")
    assert events[-1][1].content == "plain answer"
    assert len(calls) == 2


def test_failures_become_backend_errors():
    adapter = LLMAdapter(model="anthropic/x")

    with patch("skilled_agent.llm.litellm.completion", side_effect=RuntimeError("down")):
        with pytest.raises(BackendError, match="down"):
            list(adapter.chat_stream([]))

    def broken_stream():
        yield _chunk("partial")
        raise ConnectionResetError("reset")

    with patch("skilled_agent.llm.litellm.completion", return_value=broken_stream()):
        with pytest.raises(BackendError, match="Stream interrupted"):
            list(adapter.chat_stream([]))


def test_create_llm_selects_backend(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")

    anthropic = create_llm(Config(provider="anthropic"))
    ollama = create_llm(Config(provider="ollama", model_name="llama3.2"))

    assert anthropic.model == "anthropic/claude-haiku-4-5"
    assert anthropic.api_key == "sk-test"
    assert anthropic.api_base is None
    assert ollama.model == "ollama_chat/llama3.2"
    assert ollama.api_base == "http://localhost:11434"
    assert ollama.api_key is None


def test_create_llm_rejects_unknown_provider():
    with pytest.raises(ConfigError):
        create_llm(Config(provider="bogus"))


def test_system_prompt_lists_skills():
    prompt = build_system_prompt("- **pdf**: PDFs (/s/pdf/SKILL.md)", "/s")

    assert "- **pdf**: PDFs (/s/pdf/SKILL.md)" in prompt
    assert "Skills live under /s" in prompt
    assert "No skills available currently." in build_system_prompt("", "/s")


def test_ollama_base_url_is_not_sent_to_anthropic():
    config = Config(provider="anthropic", api_base="http://localhost:11434")

    adapter = create_llm(config)

    assert adapter.model == "anthropic/claude-haiku-4-5"
    assert adapter.api_base is None
    assert "api_base" not in adapter._request_kwargs([], None, stream=False)


def test_ollama_uses_configured_base_url():
    adapter = create_llm(Config(provider="ollama", api_base="http://gpu-box:11434"))

    assert adapter.api_base == "http://gpu-box:11434"
