"""Turn executor: drives model steps and streams tool activity and text."""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from .context_window import ContextWindowManager
from .conversation import Conversation
from .errors import BackendError, ConversationError, ToolError
from .llm import LLMAdapter, LLMResponse, ToolCall
from .logger import TOOL_FAULT, get_logger
from .rendering import AGENT_LABEL, tool_call_line, tool_result_line, write_text
from .streaming import ToolCallCompleted, ToolCallRequested, TurnChannels
from .tools import ToolRegistry

_log = get_logger(__name__)
console = Console()

__all__ = ["Agent", "TurnOutcome", "AWAITING_INPUT", "TURN_ACTIVE"]

AWAITING_INPUT = "awaiting-input"
TURN_ACTIVE = "turn-active"

DEFAULT_MAX_STEPS = 10


@dataclass
class TurnOutcome:
    steps: int = 0
    finished: bool = False
    error: Optional[str] = None


class Agent:
    def __init__(self, llm: LLMAdapter, tools: ToolRegistry, system_prompt: str,
                 conversation: Optional[Conversation] = None,
                 context: Optional[ContextWindowManager] = None,
                 max_steps: int = DEFAULT_MAX_STEPS):
        self.llm = llm
        self.tools = tools
        self.system_prompt = system_prompt
        self.conversation = conversation if conversation is not None else Conversation()
        self.context = context or ContextWindowManager()
        self.max_steps = max(1, int(max_steps))
        self.state = AWAITING_INPUT
        self.total_tokens = 0

    # ── Turn ───────────────────────────────────

    def chat(self, user_message: str) -> Optional[str]:
        """Run one turn. Blank input starts no turn and returns None."""
        if not user_message or not user_message.strip():
            return None
        if self.state == TURN_ACTIVE:
            raise ConversationError("A turn is already active")

        self.conversation.append_user(user_message)
        self.state = TURN_ACTIVE
        history = self.conversation.snapshot()
        _log.info("Turn %d started", self.conversation.turns + 1)

        channels = TurnChannels()
        parts: List[str] = []
        outcome: Optional[TurnOutcome] = None
        cancel = threading.Event()
        pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="turn")
        try:
            producer = pool.submit(self._run_steps, history, channels, cancel)
            activity = pool.submit(self._drain_activity, channels)
            self._drain_tokens(channels, parts)
            activity.result()
            outcome = producer.result()
        except KeyboardInterrupt:
            self._interrupt(cancel)
            raise
        finally:
            pool.shutdown(wait=False)
            final_text = self._final_text("".join(parts), outcome)
            self.conversation.append_assistant(final_text)
            self.state = AWAITING_INPUT

        _log.info("Turn finished after %d step(s)%s", outcome.steps,
                  "" if outcome.finished else " (no final answer)")
        return final_text

    def _interrupt(self, cancel: threading.Event):
        """Stop the producer after its current call and kill any running script."""
        cancel.set()
        kill_running = getattr(self.tools, "kill_running", None)
        if kill_running is not None:
            killed = kill_running()
            if killed:
                _log.warning("Turn interrupted; killed %d running script(s)", killed)

    def _final_text(self, text: str, outcome: Optional[TurnOutcome]) -> str:
        if outcome is None:
            return text or "⚠ Turn interrupted."
        if outcome.error:
            self._render_error(outcome.error)
            note = f"⚠ {outcome.error}"
            return f"{text}\n\n{note}" if text else note
        if not outcome.finished:
            notice = f"⚠ Reached max steps ({self.max_steps}) without a final answer."
            console.print(f"[yellow]{escape(notice)}[/yellow]")
            return text or notice
        return text

    # ── Producer ───────────────────────────────

    def _run_steps(self, history: List[Dict[str, Any]], channels: TurnChannels,
                   cancel: threading.Event) -> TurnOutcome:
        outcome = TurnOutcome()
        system_msg = {"role": "system", "content": self.system_prompt}
        turn_messages: List[Dict[str, Any]] = []
        try:
            for step in range(1, self.max_steps + 1):
                if cancel.is_set():
                    break
                outcome.steps = step
                messages = self.context.prepare_step([system_msg, *history, *turn_messages])
                response = self._run_step(messages, channels)

                if not response.has_tool_calls():
                    outcome.finished = True
                    break

                turn_messages.append(self._assistant_tool_message(response))
                for tc in response.tool_calls:
                    if cancel.is_set():
                        break
                    channels.emit_activity(ToolCallRequested(tc.id, tc.name, tc.arguments))
                    output = self._execute_tool(tc)
                    channels.emit_activity(ToolCallCompleted(tc.id, tc.name, output))
                    turn_messages.append({"role": "tool", "tool_call_id": tc.id,
                                          "content": output or "(empty)"})
        except BackendError as e:
            _log.error("Backend error: %s", e)
            outcome.error = str(e)
        finally:
            channels.close()
        return outcome

    def _run_step(self, messages: List[Dict[str, Any]], channels: TurnChannels) -> LLMResponse:
        response: Optional[LLMResponse] = None
        for event, data in self.llm.chat_stream(messages, self.tools.schemas):
            if event == "text":
                channels.emit_token(data)
            elif event == "done":
                response = data
        if response is None:
            raise BackendError("Stream ended without completion")
        if response.usage:
            self.total_tokens += response.usage.get("total_tokens", 0)
        return response

    @staticmethod
    def _assistant_tool_message(response: LLMResponse) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "content": response.content,
            "tool_calls": [
                {"id": tc.id, "type": "function",
                 "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)}}
                for tc in response.tool_calls
            ],
        }

    def _execute_tool(self, tc: ToolCall) -> str:
        try:
            return self.tools.execute(tc.name, tc.arguments)
        except Exception as e:
            _log.warning("Tool %s failed: %s: %s", tc.name, type(e).__name__, e, extra=TOOL_FAULT)
            _log.debug("Tool failure detail", exc_info=True, extra=TOOL_FAULT)
            return str(ToolError(tc.name, f"{type(e).__name__}: {e}"))

    # ── Consumers ──────────────────────────────

    def _drain_activity(self, channels: TurnChannels) -> None:
        for event in channels.activity():
            if isinstance(event, ToolCallRequested):
                console.print()
                console.print(tool_call_line(event.tool_name, event.arguments))
            elif isinstance(event, ToolCallCompleted):
                console.print(tool_result_line(event.tool_name, event.output))

    def _drain_tokens(self, channels: TurnChannels, parts: List[str]) -> None:
        console.print(f"{AGENT_LABEL} ", end="")
        for chunk in channels.tokens():
            write_text(console, chunk)
            parts.append(chunk)
        console.print("\n")

    def _render_error(self, message: str):
        console.print(f"[red]  Error: {escape(message)}[/red]")

    def get_stats(self) -> Dict[str, Any]:
        return {
            "turns": self.conversation.turns,
            "messages": len(self.conversation),
            "total_tokens": self.total_tokens,
            "state": self.state,
        }
