"""Script execution confined to the skills directory."""

import atexit
import os
import signal
import subprocess
import threading
from pathlib import Path, PurePosixPath
from typing import List, Optional, Set, Tuple

from ..errors import ScriptTimeoutError, ToolValidationError
from ..logger import TOOL_FAULT, get_logger

_log = get_logger(__name__)

OUTSIDE_SKILLS_MESSAGE = "Script path must be within the skills directory"

# Scripts run in their own session, so a terminal Ctrl+C never reaches them.
_live: Set[subprocess.Popen] = set()
_live_lock = threading.Lock()


def _kill_group(proc: subprocess.Popen):
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        proc.kill()


def kill_running_scripts() -> int:
    """SIGKILL the process group of every script still running. Returns the count."""
    with _live_lock:
        procs = list(_live)
    for proc in procs:
        _log.warning("Killing script process group %d", proc.pid)
        _kill_group(proc)
    return len(procs)


atexit.register(kill_running_scripts)


class ScriptRunner:
    """Run executables living under ``<skills_root>/<skill>/<subpath>``.

    Paths are checked lexically: separators normalised, no ``..`` segment,
    contained in the skills root and at least two levels below it. The
    filesystem is only touched once validation has passed.
    """

    def __init__(self, skills_root: str, timeout: float = 10):
        self.skills_root = PurePosixPath(Path(skills_root).resolve().as_posix())
        self.timeout = timeout

    def validate_path(self, script_path: str) -> PurePosixPath:
        normalized = str(script_path).replace("\\", "/")
        if not normalized:
            raise ToolValidationError(OUTSIDE_SKILLS_MESSAGE)
        candidate = PurePosixPath(normalized)
        if ".." in candidate.parts:
            raise ToolValidationError(OUTSIDE_SKILLS_MESSAGE)
        try:
            relative = candidate.relative_to(self.skills_root)
        except ValueError:
            raise ToolValidationError(OUTSIDE_SKILLS_MESSAGE)
        # <skill>/<subpath...>: the skill directory itself is never runnable.
        if len(relative.parts) < 2:
            raise ToolValidationError(OUTSIDE_SKILLS_MESSAGE)
        return candidate

    def run(self, script_path: str, args: Optional[List[str]] = None) -> str:
        target = Path(str(self.validate_path(script_path)))

        if not target.is_file():
            return "Script not found"
        if not os.access(target, os.X_OK):
            return "Script is not executable"

        argv = [str(target), *(args or [])]
        _log.info("Running script: %s", " ".join(argv)[:200])
        try:
            returncode, stdout, stderr = self._spawn(argv)
        except ScriptTimeoutError as e:
            _log.warning("Script %s: %s", target, e, extra=TOOL_FAULT)
            return str(e)
        except OSError as e:
            return f"Error executing script: {e}"

        if returncode != 0:
            return f"Script failed with exit code {returncode}: {stderr}"
        return stdout

    def _spawn(self, argv: List[str]) -> Tuple[int, str, str]:
        """Run ``argv`` in its own process group and race it against the timeout.

        The group is killed and reaped on every exit path, so nothing the
        script started outlives the call.
        """
        with subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=True,
        ) as proc:
            with _live_lock:
                _live.add(proc)
            try:
                stdout, stderr = proc.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                _kill_group(proc)
                proc.communicate()
                raise ScriptTimeoutError(self.timeout)
            except BaseException:
                _kill_group(proc)
                raise
            finally:
                with _live_lock:
                    _live.discard(proc)
            return proc.returncode, stdout, stderr
