"""Skill discovery: SKILL.md front matter under the skills root."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .logger import get_logger

_log = get_logger(__name__)

SKILL_FILE_NAME = "SKILL.md"


@dataclass(frozen=True)
class SkillSpec:
    name: str
    description: str
    path: str
    allowed_tools: Tuple[str, ...] = ()
    license: Optional[str] = None
    compatibility: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


def _split_frontmatter(raw: str) -> Optional[str]:
    lines = raw.splitlines()
    if not lines or lines[0].strip() != "---":
        return None
    for index in range(1, len(lines)):
        if lines[index].strip() == "---":
            return "\n".join(lines[1:index])
    return None


def _normalize_allowed_tools(value) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = re.split(r"[\s,]+", value)
    elif isinstance(value, list):
        items = [str(item) for item in value]
    else:
        return ()
    return tuple(item.strip() for item in items if item and item.strip())


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_skill_file(skill_file: Path) -> Optional[SkillSpec]:
    try:
        raw = skill_file.read_text(encoding="utf-8")
    except OSError as e:
        _log.warning("Cannot read %s: %s", skill_file, e)
        return None

    frontmatter_text = _split_frontmatter(raw)
    if frontmatter_text is None:
        _log.info("Skipping %s: no front matter", skill_file)
        return None

    try:
        frontmatter = yaml.safe_load(frontmatter_text) or {}
    except yaml.YAMLError as e:
        _log.warning("Skipping %s: invalid front matter: %s", skill_file, e)
        return None

    if not isinstance(frontmatter, dict):
        return None

    name = frontmatter.get("name")
    description = frontmatter.get("description")
    if not isinstance(name, str) or not name.strip():
        return None
    if not isinstance(description, str) or not description.strip():
        return None

    metadata = frontmatter.get("metadata")
    return SkillSpec(
        name=name.strip(),
        description=description.strip(),
        path=str(skill_file),
        allowed_tools=_normalize_allowed_tools(frontmatter.get("allowed-tools")),
        license=_optional_str(frontmatter.get("license")),
        compatibility=_optional_str(frontmatter.get("compatibility")),
        metadata=dict(metadata) if isinstance(metadata, dict) else {},
    )


def discover_skills(skills_root: Path) -> List[SkillSpec]:
    """Return descriptors for ``<skills_root>/<skill>/SKILL.md`` files.

    Only files exactly one directory below the root are considered; nested
    SKILL.md files and files without a name/description are ignored.
    """
    root = Path(skills_root)
    if not root.is_dir():
        _log.info("Skills root %s does not exist", root)
        return []

    skills: List[SkillSpec] = []
    for skill_file in sorted(root.glob(f"*/{SKILL_FILE_NAME}")):
        if not skill_file.is_file():
            continue
        spec = _parse_skill_file(skill_file)
        if spec:
            skills.append(spec)
    _log.info("Discovered %d skill(s) under %s", len(skills), root)
    return skills


def build_skills_list_md(skills: List[SkillSpec]) -> str:
    """Markdown bullet list used in the system prompt ('' when empty)."""
    return "\n".join(
        f"- **{spec.name}**: {spec.description} ({spec.path})" for spec in skills
    )
