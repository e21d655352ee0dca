"""Tests for sandboxed script execution."""

import os
import signal
import threading
import time
from unittest.mock import patch

import pytest

from skilled_agent.errors import ToolValidationError
from skilled_agent.tools.script_ops import (
    OUTSIDE_SKILLS_MESSAGE,
    ScriptRunner,
    kill_running_scripts,
)


class TestPathValidation:

    @pytest.mark.parametrize("relative", [
        "demo",                      # skill directory itself
        "",                          # the root
        "demo/../other/scripts/x.sh",
        "demo/scripts/../../x.sh",
    ])
    def test_rejects_paths_not_nested_under_a_skill(self, skills_root, relative):
        runner = ScriptRunner(str(skills_root))
        path = f"{skills_root}/{relative}" if relative else str(skills_root)

        with pytest.raises(ToolValidationError, match=OUTSIDE_SKILLS_MESSAGE):
            runner.validate_path(path)

    def test_rejects_paths_outside_root(self, skills_root):
        runner = ScriptRunner(str(skills_root))

        for path in ["/bin/sh", "scripts/run.sh", f"{skills_root}-evil/demo/run.sh",
                     str(skills_root.parent / "demo" / "run.sh")]:
            with pytest.raises(ToolValidationError):
                runner.validate_path(path)

    def test_rejects_upward_traversal_even_if_it_lands_inside(self, skills_root):
        runner = ScriptRunner(str(skills_root))

        with pytest.raises(ToolValidationError):
            runner.validate_path(f"{skills_root}/demo/scripts/../scripts/run.sh")

    def test_accepts_nested_path_and_normalizes_backslashes(self, skills_root):
        runner = ScriptRunner(str(skills_root))

        assert str(runner.validate_path(f"{skills_root}/demo/run.sh")).endswith("demo/run.sh")
        windows_style = f"{skills_root}\\demo\\scripts\\run.sh"
        assert str(runner.validate_path(windows_style)) == f"{skills_root}/demo/scripts/run.sh"

    def test_rejection_never_spawns(self, skills_root):
        runner = ScriptRunner(str(skills_root))

        with patch("skilled_agent.tools.script_ops.subprocess.Popen") as popen:
            with pytest.raises(ToolValidationError):
                runner.run("/bin/echo", ["hi"])
            with pytest.raises(ToolValidationError):
                runner.run(f"{skills_root}/demo/../../bin/echo")

        popen.assert_not_called()


class TestRun:

    def test_missing_script(self, skills_root):
        runner = ScriptRunner(str(skills_root))

        assert runner.run(f"{skills_root}/demo/scripts/missing.sh") == "Script not found"

    def test_not_executable(self, make_script):
        path = make_script("plain.sh", "#!/bin/sh\necho hi\n", executable=False)
        runner = ScriptRunner(str(path.parents[2]))

        assert runner.run(str(path)) == "Script is not executable"

    def test_success_returns_stdout_verbatim(self, make_script):
        path = make_script("hello.sh", '#!/bin/sh\nprintf "hello %s\\n" "$1"\n')
        runner = ScriptRunner(str(path.parents[2]))

        assert runner.run(str(path), ["world"]) == "hello world\n"

    def test_nonzero_exit_reports_code_and_stderr(self, make_script):
        path = make_script("fail.sh", "#!/bin/sh\necho boom >&2\nexit 3\n")
        runner = ScriptRunner(str(path.parents[2]))

        result = runner.run(str(path))

        assert result == "Script failed with exit code 3: boom\n"

    def test_timeout_kills_child_and_reports(self, make_script, tmp_path):
        pid_file = tmp_path / "child.pid"
        path = make_script("slow.sh", f"#!/bin/sh\necho $$ > {pid_file}\nexec sleep 30\n")
        runner = ScriptRunner(str(path.parents[2]), timeout=1)

        started = time.monotonic()
        result = runner.run(str(path))
        elapsed = time.monotonic() - started

        assert result == "Script timed out after 1s"
        assert elapsed < 10
        pid = int(pid_file.read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    def test_spawn_error_is_reported(self, make_script):
        path = make_script("noshebang.sh", "\x7fELF-not-really")
        runner = ScriptRunner(str(path.parents[2]))

        result = runner.run(str(path))

        assert result.startswith("Error executing script:")


class TestKillRunning:

    def test_kills_script_still_running(self, make_script, tmp_path):
        pid_file = tmp_path / "child.pid"
        path = make_script("slow.sh", f"#!/bin/sh\necho $$ > {pid_file}\nexec sleep 30\n")
        runner = ScriptRunner(str(path.parents[2]), timeout=60)
        results = []
        worker = threading.Thread(target=lambda: results.append(runner.run(str(path))))
        worker.start()

        deadline = time.monotonic() + 5
        while not pid_file.exists() or not pid_file.read_text().strip():
            assert time.monotonic() < deadline, "script never started"
            time.sleep(0.05)

        assert kill_running_scripts() == 1
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert results == [f"Script failed with exit code -{int(signal.SIGKILL)}: "]
        pid = int(pid_file.read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
        assert kill_running_scripts() == 0
