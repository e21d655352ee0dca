"""Terminal labels and startup output (rich markup)."""

from typing import Any, List

from prompt_toolkit.formatted_text import HTML
from rich.console import Console
from rich.markup import escape

from . import __version__
from .streaming import compact

USER_LABEL = "[bold cyan]User:[/bold cyan]"
AGENT_LABEL = "[bold green]Agent:[/bold green]"

BANNER = (
    f"[bold blue]skilled-agent[/bold blue] "
    f"[dim]v{__version__} · skill-using assistant[/dim]"
)


def make_prompt_html() -> HTML:
    return HTML('<style fg="ansicyan"><b>User:</b></style> ')


def tool_call_line(name: str, arguments: Any) -> str:
    return (f"[bold yellow]⚡ Tool Call: {escape(name)}[/bold yellow] "
            f"[dim]{escape(compact(arguments))}[/dim]")


def tool_result_line(name: str, output: Any) -> str:
    return (f"[bold magenta]✓ Tool Result: {escape(name)}[/bold magenta] "
            f"[dim]{escape(compact(output))}[/dim]")


def write_text(console: Console, chunk: str) -> None:
    """Write a streamed fragment as-is: no markup, no wrapping, no newline."""
    if chunk:
        console.print(chunk, end="", markup=False, highlight=False, soft_wrap=True)


def render_startup(console: Console, config, skills: List[Any]) -> None:
    console.print(BANNER)
    console.print(
        f"[dim]backend[/dim] [bold]{config.provider}[/bold] [dim]→[/dim] {config.model}"
        f" [dim]• steps[/dim] {config.max_steps}"
        f" [dim]• window[/dim] {config.context_messages} messages"
    )
    names = ", ".join(spec.name for spec in skills) if skills else "(none)"
    console.print(f"[dim]skills[/dim] {escape(names)}")
    console.print(f"[dim]root[/dim] {config.skills_root}")
    if config.backend_api_base:
        console.print(f"[dim]api[/dim] {config.backend_api_base}")
    console.print("[dim]Type your message and press Enter. Press Ctrl+C to exit.[/dim]")
    console.print()
