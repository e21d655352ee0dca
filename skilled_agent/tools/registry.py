"""Tool registry: dict-based dispatch with per-tool input validation."""
from typing import Any, Callable, Dict, List, Optional

from ..errors import ToolValidationError
from ..logger import TOOL_FAULT, get_logger
from .file_ops import FileOps
from .script_ops import ScriptRunner, kill_running_scripts

_log = get_logger(__name__)

_JSON_TYPES = {
    "string": str,
    "integer": int,
    "boolean": bool,
    "array": list,
    "object": dict,
}


class _ToolEntry:
    """Single tool registration: schema + validator + handler."""
    __slots__ = ("handler", "schema", "validator")

    def __init__(self, handler: Callable[..., str], schema: dict,
                 validator: Optional[Callable[[Dict[str, Any]], None]] = None):
        self.handler = handler
        self.schema = schema
        self.validator = validator

    @property
    def parameters(self) -> dict:
        return self.schema["function"]["parameters"]


def _schema(name: str, description: str, properties: dict,
            required: list) -> dict:
    """Build an OpenAI-compatible function schema."""
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_S = lambda desc, **kw: {"type": "string", "description": desc, **kw}
_A = lambda desc, **kw: {"type": "array", "items": {"type": "string"}, "description": desc, **kw}


def _check_structure(parameters: dict, arguments: Any) -> Dict[str, Any]:
    """Check arguments against a flat object schema; unknown keys are dropped."""
    if not isinstance(arguments, dict):
        raise ToolValidationError("Arguments must be a JSON object")

    properties = parameters.get("properties", {})
    for key in parameters.get("required", []):
        if arguments.get(key) is None:
            raise ToolValidationError(f"Missing required argument '{key}'")

    cleaned: Dict[str, Any] = {}
    for key, prop in properties.items():
        value = arguments.get(key)
        if value is None:
            continue
        expected = _JSON_TYPES.get(prop.get("type"))
        if expected and (not isinstance(value, expected) or
                         (expected is int and isinstance(value, bool))):
            raise ToolValidationError(f"Argument '{key}' must be of type {prop['type']}")
        item_type = _JSON_TYPES.get(prop.get("items", {}).get("type"))
        if expected is list and item_type:
            if not all(isinstance(item, item_type) for item in value):
                raise ToolValidationError(
                    f"Argument '{key}' must be an array of {prop['items']['type']}s")
        cleaned[key] = value
    return cleaned


class ToolRegistry:
    def __init__(self, skills_root: str, script_timeout: float = 10,
                 max_read_bytes: int = 1_000_000):
        self.scripts = ScriptRunner(skills_root, timeout=script_timeout)
        self.file_ops = FileOps(max_read_bytes=max_read_bytes)
        self._tools: Dict[str, _ToolEntry] = {}
        self._register_tools()

    def _register_tools(self):
        """Register all tools — single source of truth for schema + validator + handler."""
        T = _ToolEntry
        S = _schema
        f = self.file_ops
        r = self.scripts

        self._tools["run_script"] = T(
            handler=lambda **a: r.run(a["script_path"], a.get("args")),
            schema=S("run_script",
                     "Run an executable script from the skills directory.",
                     {"script_path": _S("Absolute path of a script inside a skill folder, "
                                        "e.g. <skills root>/<skill>/scripts/run.sh"),
                      "args": _A("Command-line arguments passed to the script")},
                     ["script_path"]),
            validator=lambda a: r.validate_path(a["script_path"]),
        )
        self._tools["list_directory"] = T(
            handler=lambda **a: f.list_directory(a["dir_path"]),
            schema=S("list_directory",
                     "List all files and directories in a given path. Directories end with '/'.",
                     {"dir_path": _S("Directory path")},
                     ["dir_path"]),
        )
        self._tools["read_file"] = T(
            handler=lambda **a: f.read_file(a["file_path"]),
            schema=S("read_file",
                     "Read the contents of a file at the given path.",
                     {"file_path": _S("File path")},
                     ["file_path"]),
            validator=lambda a: f.validate_read_path(a["file_path"]),
        )

    # ── Public API ──

    def kill_running(self) -> int:
        """Kill scripts still running (operator interrupt)."""
        return kill_running_scripts()

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    @property
    def schemas(self) -> List[dict]:
        return [entry.schema for entry in self._tools.values()]

    def validate(self, tool_name: str, arguments: Any) -> Dict[str, Any]:
        """Return cleaned arguments or raise ToolValidationError."""
        entry = self._tools[tool_name]
        cleaned = _check_structure(entry.parameters, arguments)
        if entry.validator:
            entry.validator(cleaned)
        return cleaned

    def execute(self, tool_name: str, arguments: Any) -> str:
        """Dispatch a tool call by name.

        Expected failures come back as text for the model. Anything else
        (e.g. an I/O error that is not 'not found') propagates.
        """
        if tool_name not in self._tools:
            return f"Unknown tool: {tool_name}"

        try:
            cleaned = self.validate(tool_name, arguments)
        except ToolValidationError as e:
            _log.warning("Rejected %s input: %s", tool_name, e.reason, extra=TOOL_FAULT)
            return f"Invalid input for {tool_name}: {e.reason}"

        return self._tools[tool_name].handler(**cleaned)
