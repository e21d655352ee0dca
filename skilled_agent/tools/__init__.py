from .registry import ToolRegistry
from .file_ops import FileOps
from .script_ops import ScriptRunner, kill_running_scripts
__all__ = ["ToolRegistry", "FileOps", "ScriptRunner", "kill_running_scripts"]
