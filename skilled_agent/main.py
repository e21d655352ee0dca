"""
skilled-agent — skill-using assistant for your terminal.

Command: skilled-agent run
"""

import os
import sys
from typing import Callable

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .agent import Agent
from .config import CONFIG_DIR, HISTORY_FILE, Config
from .context_window import ContextWindowManager
from .conversation import Conversation
from .errors import ConfigError
from .llm import build_system_prompt, create_llm
from .logger import setup_logger
from .rendering import make_prompt_html, render_startup
from .skills import build_skills_list_md, discover_skills
from .tools import ToolRegistry

console = Console()


def _load_config(project_dir: str, verbose: bool) -> Config:
    try:
        config = Config.load(project_dir)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)
    if verbose:
        config.verbose = True
    setup_logger("skilled_agent", verbose=config.verbose,
                 log_file=config.log_file if config.log_file else None)
    return config


def build_agent(config: Config, skills=None) -> Agent:
    """Wire backend, tools, prompt and context window for ``config``."""
    skills_root = config.skills_root
    if skills is None:
        skills = discover_skills(skills_root)
    system_prompt = build_system_prompt(build_skills_list_md(skills), str(skills_root))
    tools = ToolRegistry(
        skills_root=str(skills_root),
        script_timeout=config.script_timeout,
        max_read_bytes=config.max_read_bytes,
    )
    return Agent(
        llm=create_llm(config),
        tools=tools,
        system_prompt=system_prompt,
        conversation=Conversation(),
        context=ContextWindowManager(max_messages=config.context_messages),
        max_steps=config.max_steps,
    )


def interactive_loop(agent: Agent, read_line: Callable[[], str], out: Console = console) -> None:
    """One line = one turn. Blank lines re-prompt; Ctrl+C or EOF ends the session."""
    while True:
        try:
            user_input = read_line()
        except (EOFError, KeyboardInterrupt):
            out.print("\n[dim]Goodbye![/dim]")
            return

        if not user_input or not user_input.strip():
            continue

        try:
            agent.chat(user_input.strip())
        except KeyboardInterrupt:
            out.print("\n[dim]Goodbye![/dim]")
            return


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """skilled-agent — skill-using assistant for your terminal."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@cli.command()
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def run(project_dir, verbose):
    """Start an interactive session."""
    config = _load_config(project_dir, verbose)
    skills = discover_skills(config.skills_root)
    try:
        agent = build_agent(config, skills)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)

    render_startup(console, config, skills)

    os.environ.setdefault("PROMPT_TOOLKIT_NO_CPR", "1")
    from prompt_toolkit import PromptSession
    from prompt_toolkit.history import FileHistory

    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    session = PromptSession(history=FileHistory(str(HISTORY_FILE)), multiline=False)

    interactive_loop(agent, lambda: session.prompt(make_prompt_html()))


@cli.command()
@click.argument("message", nargs=-1, required=True)
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def ask(message, project_dir, verbose):
    """Run a single query."""
    config = _load_config(project_dir, verbose)
    try:
        agent = build_agent(config)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(1)
    agent.chat(" ".join(message))


@cli.command("skills")
@click.option("--project-dir", "-d", default=".", help="Project directory")
def skills_cmd(project_dir):
    """List discovered skills."""
    config = _load_config(project_dir, verbose=False)
    skills = discover_skills(config.skills_root)
    if not skills:
        console.print(f"[dim]No skills found under {config.skills_root}[/dim]")
        return
    table = Table(title="Skills", border_style="#4C566A")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Allowed tools", style="dim")
    for spec in skills:
        table.add_row(spec.name, spec.description, ", ".join(spec.allowed_tools) or "-")
    console.print(table)


@cli.command("config")
@click.option("--project-dir", "-d", default=".", help="Project directory")
def config_cmd(project_dir):
    """Show configuration."""
    config = _load_config(project_dir, verbose=False)
    table = Table(title="Configuration", border_style="#4C566A", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in config.summary().items():
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":
    cli()
