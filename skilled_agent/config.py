"""
Configuration — backend selection plus a few runtime limits.

Loading priority (later wins):
  1. Built-in defaults
  2. Project dir .agent.conf.yml
  3. Environment (MODEL_PROVIDER, MODEL_NAME, ...), including values
     loaded from ~/.skilled-agent/.env and <project>/.env

An unknown provider is a fatal ConfigError.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError
from .logger import get_logger

_log = get_logger(__name__)

CONFIG_DIR = Path.home() / ".skilled-agent"
HISTORY_FILE = CONFIG_DIR / "history.txt"
PROJECT_CONFIG_NAME = ".agent.conf.yml"

DEFAULT_PROVIDER = "anthropic"
DEFAULT_MODELS = {
    "anthropic": "claude-haiku-4-5",
    "ollama": "ministral-3:8b",
}
PROVIDERS = set(DEFAULT_MODELS)
# Only backends listed here take a base URL (api-base / OLLAMA_API_BASE).
DEFAULT_API_BASES = {
    "ollama": "http://localhost:11434",
}

DEFAULT_MAX_STEPS = 10
DEFAULT_CONTEXT_MESSAGES = 8
DEFAULT_SCRIPT_TIMEOUT = 10
DEFAULT_MAX_READ_BYTES = 1_000_000


@dataclass
class Config:
    provider: str = DEFAULT_PROVIDER
    model_name: Optional[str] = None
    api_base: Optional[str] = None
    temperature: float = 0.0
    max_tokens: int = 4096
    skills_dir: str = "skills"
    max_steps: int = DEFAULT_MAX_STEPS
    context_messages: int = DEFAULT_CONTEXT_MESSAGES
    script_timeout: int = DEFAULT_SCRIPT_TIMEOUT
    max_read_bytes: int = DEFAULT_MAX_READ_BYTES
    verbose: bool = False
    log_file: Optional[str] = None
    project_root: Optional[str] = None
    _config_source: str = ""

    @classmethod
    def load(cls, project_dir: str = ".") -> "Config":
        config = cls()
        project_path = Path(project_dir).resolve()

        for env_path in [CONFIG_DIR / ".env", project_path / ".env"]:
            if env_path.exists():
                load_dotenv(env_path, override=False)

        candidate = project_path / PROJECT_CONFIG_NAME
        if candidate.exists():
            config._load_yaml(candidate)
            config._config_source = str(candidate)

        config._apply_env()
        config.project_root = str(project_path)
        config.validate()
        return config

    def _load_yaml(self, filepath: Path):
        try:
            with open(filepath, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            _log.warning("Ignoring unreadable config %s: %s", filepath, e)
            return
        if not isinstance(data, dict):
            _log.warning("Ignoring config %s: top level is not a mapping", filepath)
            return

        self.provider = self._normalize_provider(data.get("provider", self.provider))
        self.model_name = data.get("model", self.model_name) or None
        self.api_base = data.get("api-base", self.api_base) or None
        self.temperature = self._coerce_float(data.get("temperature", self.temperature), default=0.0)
        self.max_tokens = self._coerce_positive_int(
            data.get("max-tokens", self.max_tokens), default=4096, min_value=256, max_value=200000
        )
        self.skills_dir = str(data.get("skills-dir", self.skills_dir) or "skills")
        self.max_steps = self._coerce_positive_int(
            data.get("max-steps", self.max_steps), default=DEFAULT_MAX_STEPS, min_value=1, max_value=100
        )
        self.context_messages = self._coerce_positive_int(
            data.get("context-messages", self.context_messages),
            default=DEFAULT_CONTEXT_MESSAGES, min_value=2, max_value=1000,
        )
        self.script_timeout = self._coerce_positive_int(
            data.get("script-timeout", self.script_timeout),
            default=DEFAULT_SCRIPT_TIMEOUT, min_value=1, max_value=600,
        )
        self.max_read_bytes = self._coerce_positive_int(
            data.get("max-read-bytes", self.max_read_bytes),
            default=DEFAULT_MAX_READ_BYTES, min_value=1, max_value=100_000_000,
        )
        self.verbose = self._coerce_bool(data.get("verbose", self.verbose), default=False)
        self.log_file = data.get("log-file", self.log_file)

    def _apply_env(self):
        env_map = {
            "MODEL_PROVIDER": ("provider", self._normalize_provider),
            "MODEL_NAME": ("model_name", lambda v: v.strip() or None),
            "OLLAMA_API_BASE": ("api_base", str),
            "AGENT_VERBOSE": ("verbose", lambda v: self._coerce_bool(v, default=self.verbose)),
        }
        for env_var, (attr, conv) in env_map.items():
            val = os.environ.get(env_var)
            if val:
                setattr(self, attr, conv(val))

    def validate(self):
        if self.provider not in PROVIDERS:
            raise ConfigError(
                f"Unknown model provider: {self.provider!r} "
                f"(expected one of: {', '.join(sorted(PROVIDERS))})"
            )

    @property
    def model(self) -> str:
        """Model identifier, defaulting per provider."""
        return self.model_name or DEFAULT_MODELS.get(self.provider, "")

    @property
    def backend_api_base(self) -> Optional[str]:
        """Base URL for the selected backend; None for hosted backends."""
        default = DEFAULT_API_BASES.get(self.provider)
        if default is None:
            return None
        return self.api_base or default

    @property
    def skills_root(self) -> Path:
        custom = Path(self.skills_dir).expanduser()
        if not custom.is_absolute():
            custom = Path(self.project_root or ".") / custom
        return custom.resolve()

    def summary(self) -> Dict[str, Any]:
        return {
            "Provider": self.provider,
            "Model": self.model,
            "API base": self.backend_api_base or "(hosted)",
            "Skills root": str(self.skills_root),
            "Max steps": self.max_steps,
            "Context messages": self.context_messages,
            "Script timeout": f"{self.script_timeout}s",
            "Max read bytes": f"{self.max_read_bytes:,}",
            "Verbose": "ON" if self.verbose else "OFF",
            "Project": self.project_root,
            "Config": self._config_source or "(defaults)",
        }

    @staticmethod
    def _normalize_provider(value) -> str:
        return str(value or DEFAULT_PROVIDER).strip().lower()

    @staticmethod
    def _coerce_bool(value, default: bool) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("1", "true", "yes", "on"):
                return True
            if text in ("0", "false", "no", "off"):
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        return default

    @staticmethod
    def _coerce_float(value, default: float) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    @staticmethod
    def _coerce_positive_int(value, default: int, min_value: int = 1, max_value: int = 100000) -> int:
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return default
        if parsed < min_value:
            return min_value
        if parsed > max_value:
            return max_value
        return parsed
