"""LLM adapter via litellm, plus backend selection and the system prompt."""

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional, Tuple

import litellm
litellm.suppress_debug_info = True

from .config import DEFAULT_API_BASES, DEFAULT_MODELS, Config
from .errors import BackendError, ConfigError
from .logger import get_logger

_log = get_logger(__name__)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class LLMResponse:
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    usage: Optional[Dict] = None
    finish_reason: Optional[str] = None

    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class BackendSpec:
    name: str
    model_prefix: str
    default_model: str = ""
    default_api_base: Optional[str] = None
    api_key_env: Optional[str] = None

    def model_id(self, model_name: str) -> str:
        return f"{self.model_prefix}/{model_name}"

    def resolve_api_base(self, configured: Optional[str]) -> Optional[str]:
        if not self.default_api_base:
            return None
        return configured or self.default_api_base

    def resolve_api_key(self) -> Optional[str]:
        if not self.api_key_env:
            return None
        return os.environ.get(self.api_key_env) or None


BACKENDS: Dict[str, BackendSpec] = {
    "anthropic": BackendSpec(name="anthropic", model_prefix="anthropic",
                             default_model=DEFAULT_MODELS["anthropic"],
                             api_key_env="ANTHROPIC_API_KEY"),
    "ollama": BackendSpec(name="ollama", model_prefix="ollama_chat",
                          default_model=DEFAULT_MODELS["ollama"],
                          default_api_base=DEFAULT_API_BASES["ollama"]),
}


SYSTEM_PROMPT_TEMPLATE = """\
# Skilled Agent

You are a skilled agent that can learn using skills that are just a bunch of markdown and small programs.

## Tone and formatting

You are being used for serious work, so be both serious and concise in your responses.
Use only simple markdown: your output is displayed in a terminal.

## Skills Usage Pattern

1. **Discover**: When you receive a user request, first think about which skills might be relevant
2. **Read**: Always read the full SKILL.md document before using a skill
3. **Execute**: Use the tools provided by the skill to accomplish the task
4. **Verify**: Check the results and provide feedback to the user

## Available Skills

{skills_list}

## Important Rules

- ALWAYS read the SKILL.md document before using any skill-related tools
- Skills live under {skills_root}
- If a skill provides scripts, they are located in the `scripts/` subdirectory; run them with their absolute path
- Be explicit about what you're doing and why when using skills
- Follow the skill usage pattern for best results
"""


def build_system_prompt(skills_list_md: str, skills_root: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        skills_list=skills_list_md or "No skills available currently.",
        skills_root=skills_root,
    )


def _usage_dict(usage) -> Optional[Dict[str, int]]:
    if not usage:
        return None
    return {"prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
            "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
            "total_tokens": getattr(usage, "total_tokens", 0) or 0}


def _parse_arguments(raw: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        return {"_raw": raw}
    return args if isinstance(args, dict) else {"_raw": raw}


class LLMAdapter:
    """Unified LLM interface. Passes api_key/api_base directly to litellm."""

    def __init__(self, model: str, temperature: float = 0.0,
                 max_tokens: int = 4096, api_base: Optional[str] = None,
                 api_key: Optional[str] = None):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_base = api_base
        self.api_key = api_key

    def _request_kwargs(self, messages: List[Dict[str, Any]],
                        tools: Optional[List[Dict]], stream: bool) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model, "messages": messages,
            "temperature": self.temperature, "max_tokens": self.max_tokens,
        }
        if stream:
            kwargs["stream"] = True
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key
        return kwargs

    def chat(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict]] = None) -> LLMResponse:
        try:
            response = litellm.completion(**self._request_kwargs(messages, tools, stream=False))
        except litellm.exceptions.AuthenticationError as e:
            raise BackendError(f"Auth failed. Check API key.\n{e}")
        except litellm.exceptions.APIConnectionError as e:
            raise BackendError(f"Cannot connect: model={self.model}, base={self.api_base or 'default'}\n{e}")
        except Exception as e:
            raise BackendError(f"LLM error: {type(e).__name__}: {e}")

        choice = response.choices[0]
        msg = choice.message

        tool_calls = None
        if msg.tool_calls:
            tool_calls = [
                ToolCall(id=tc.id, name=tc.function.name,
                         arguments=_parse_arguments(tc.function.arguments))
                for tc in msg.tool_calls
            ]

        return LLMResponse(content=msg.content, tool_calls=tool_calls,
                           usage=_usage_dict(getattr(response, "usage", None)),
                           finish_reason=getattr(choice, "finish_reason", None))

    def chat_stream(self, messages: List[Dict[str, Any]],
                    tools: Optional[List[Dict]] = None
                    ) -> Generator[Tuple[str, Any], None, None]:
        """Streaming chat. Yields (event_type, data) tuples.

        Event types:
          "text" — str: incremental text content
          "done" — LLMResponse: final complete response

        Falls back to non-streaming if the stream cannot be opened.
        """
        try:
            response_stream = litellm.completion(**self._request_kwargs(messages, tools, stream=True))
        except Exception as e:
            _log.warning("Streaming unavailable (%s: %s), falling back", type(e).__name__, e)
            response = self.chat(messages, tools)
            if response.content:
                yield ("text", response.content)
            yield ("done", response)
            return

        full_content = ""
        tc_data: Dict[int, Dict[str, str]] = {}
        usage = None
        finish_reason = None

        try:
            for chunk in response_stream:
                if getattr(chunk, "usage", None):
                    usage = _usage_dict(chunk.usage)
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                if getattr(choice, "finish_reason", None):
                    finish_reason = choice.finish_reason
                delta = choice.delta

                if getattr(delta, "content", None):
                    full_content += delta.content
                    yield ("text", delta.content)

                # Tool calls arrive in fragments keyed by index.
                for tc_delta in getattr(delta, "tool_calls", None) or []:
                    idx = tc_delta.index or 0
                    slot = tc_data.setdefault(idx, {"id": "", "name": "", "args": ""})
                    if tc_delta.id:
                        slot["id"] = tc_delta.id
                    if tc_delta.function:
                        if tc_delta.function.name:
                            slot["name"] = tc_delta.function.name
                        if tc_delta.function.arguments:
                            slot["args"] += tc_delta.function.arguments
        except Exception as e:
            raise BackendError(f"Stream interrupted: {type(e).__name__}: {e}")

        tool_calls = None
        if tc_data:
            tool_calls = [
                ToolCall(id=tc_data[idx]["id"] or f"call_{idx}",
                         name=tc_data[idx]["name"],
                         arguments=_parse_arguments(tc_data[idx]["args"]))
                for idx in sorted(tc_data)
            ]

        yield ("done", LLMResponse(
            content=full_content or None,
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=finish_reason,
        ))


def create_llm(config: Config) -> LLMAdapter:
    """Build the adapter for the configured backend."""
    spec = BACKENDS.get(config.provider)
    if spec is None:
        raise ConfigError(f"Unknown model provider: {config.provider!r}")
    model_name = config.model_name or spec.default_model
    _log.info("Using %s backend, model %s", spec.name, model_name)
    return LLMAdapter(
        model=spec.model_id(model_name),
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        api_base=spec.resolve_api_base(config.api_base),
        api_key=spec.resolve_api_key(),
    )
