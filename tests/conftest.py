"""Shared fixtures for skilled-agent tests."""

import os
import stat
from pathlib import Path

import pytest


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory and cd into it."""
    orig = os.getcwd()
    os.chdir(tmp_path)
    yield tmp_path
    os.chdir(orig)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove backend selection variables so defaults apply."""
    for var in ("MODEL_PROVIDER", "MODEL_NAME", "OLLAMA_API_BASE", "AGENT_VERBOSE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("skilled_agent.config.CONFIG_DIR", Path("/nonexistent-skilled-agent-home"))
    return monkeypatch


@pytest.fixture
def skills_root(tmp_path):
    root = (tmp_path / "skills").resolve()
    root.mkdir()
    return root


@pytest.fixture
def make_script(skills_root):
    """Write a script under <skills_root>/<skill>/scripts/ and return its path."""

    def _make(name: str, body: str, skill: str = "demo", executable: bool = True) -> Path:
        script_dir = skills_root / skill / "scripts"
        script_dir.mkdir(parents=True, exist_ok=True)
        path = script_dir / name
        path.write_text(body, encoding="utf-8")
        mode = path.stat().st_mode
        if executable:
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        else:
            path.chmod(mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
        return path

    return _make


def write_skill(skills_root: Path, dirname: str, frontmatter: str, body: str = "Use this skill") -> Path:
    target_dir = skills_root / dirname
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / "SKILL.md"
    path.write_text(f"---\n{frontmatter}\n---\n{body}\n", encoding="utf-8")
    return path


class FakeConsole:
    def __init__(self):
        self.calls = []

    def print(self, *args, **kwargs):
        self.calls.append((args, kwargs))

    @property
    def text(self) -> str:
        return "".join(
            (str(args[0]) if args else "") + kwargs.get("end", "\n")
            for args, kwargs in self.calls
        )


@pytest.fixture
def fake_console():
    return FakeConsole()
