"""
Tests for sandbox module.

Runs real child processes (the current Python interpreter) to exercise:
- stdin delivery and output capture
- exit codes and spawn errors
- wall-clock timeouts that kill the whole process tree
- the output cap that kills runaway writers
"""

import platform
import sys
import time
from unittest.mock import Mock, patch

import pytest

from judge.sandbox import (
    OUTPUT_LIMIT_EXIT_CODE,
    OUTPUT_LIMIT_MESSAGE,
    TIMEOUT_EXIT_CODE,
    TIMEOUT_MESSAGE,
    _make_limits,
    _Resolution,
    kill_process_tree,
    run_command,
)


def run_python(code, tmp_path, **kwargs):
    return run_command(sys.executable, ["-c", code], cwd=str(tmp_path), **kwargs)


class TestRunCommandSuccess:
    """Test normal process completion."""

    def test_captures_stdout(self, tmp_path):
        """stdout is captured and decoded."""
        result = run_python("print('Hello')", tmp_path)

        assert result.exit_code == 0
        assert result.stdout == "Hello\n"
        assert not result.timed_out
        assert result.succeeded

    def test_feeds_stdin(self, tmp_path):
        """stdin text reaches the child."""
        result = run_python("print(input().upper())", tmp_path, stdin="abc\n")
        assert result.stdout == "ABC\n"

    def test_empty_stdin_is_closed(self, tmp_path):
        """A child reading stdin with no input sees EOF instead of hanging."""
        result = run_python(
            "import sys; print(repr(sys.stdin.read()))",
            tmp_path,
            stdin="",
            timeout_ms=3000
        )
        assert result.stdout == "''\n"
        assert not result.timed_out

    def test_runs_in_cwd(self, tmp_path):
        """The child starts in the given working directory."""
        (tmp_path / "data.txt").write_text("payload")
        result = run_python("print(open('data.txt').read())", tmp_path)
        assert result.stdout == "payload\n"


class TestRunCommandFailure:
    """Test nonzero exits and spawn errors."""

    def test_nonzero_exit_and_stderr(self, tmp_path):
        """Exit code and stderr are reported."""
        result = run_python("import sys; sys.stderr.write('bad'); sys.exit(3)", tmp_path)

        assert result.exit_code == 3
        assert result.stderr == "bad"
        assert not result.succeeded

    def test_missing_binary(self, tmp_path):
        """A missing executable resolves as a failure with the OS message."""
        result = run_command("definitely-not-a-real-binary-xyz", [], cwd=str(tmp_path))

        assert result.exit_code != 0
        assert not result.timed_out
        assert result.stderr
        assert result.stdout == ""


class TestRunCommandTimeout:
    """Test wall-clock timeout enforcement."""

    def test_sleeping_process_times_out(self, tmp_path):
        """A sleeping child is killed and reported as a timeout."""
        start = time.monotonic()
        result = run_python("import time; time.sleep(30)", tmp_path, timeout_ms=500)
        elapsed = time.monotonic() - start

        assert result.timed_out
        assert result.exit_code == TIMEOUT_EXIT_CODE
        assert result.stderr == TIMEOUT_MESSAGE
        assert result.stdout == ""
        assert elapsed < 10

    def test_grandchildren_are_killed(self, tmp_path):
        """A grandchild holding the output pipe does not keep the run alive."""
        code = (
            "import subprocess, sys, time\n"
            "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
            "time.sleep(30)\n"
        )
        start = time.monotonic()
        result = run_python(code, tmp_path, timeout_ms=1500)
        elapsed = time.monotonic() - start

        assert result.timed_out
        assert elapsed < 10

    def test_fast_process_is_not_timed_out(self, tmp_path):
        """Processes finishing before the deadline keep their real result."""
        result = run_python("print('done')", tmp_path, timeout_ms=10000)
        assert not result.timed_out
        assert result.stdout == "done\n"


class TestRunCommandOutputLimit:
    """Test the combined stdout/stderr cap."""

    def test_stdout_flood_is_killed(self, tmp_path):
        """A child writing output in a loop is stopped well before its deadline."""
        code = (
            "import sys\n"
            "chunk = 'x' * (1 << 20)\n"
            "while True:\n"
            "    sys.stdout.write(chunk)\n"
        )
        start = time.monotonic()
        result = run_python(code, tmp_path, timeout_ms=20000, max_output_bytes=256 * 1024)
        elapsed = time.monotonic() - start

        assert result.output_exceeded
        assert not result.timed_out
        assert result.exit_code == OUTPUT_LIMIT_EXIT_CODE
        assert result.stderr == OUTPUT_LIMIT_MESSAGE
        assert result.stdout == ""
        assert elapsed < 10

    def test_stderr_counts_toward_limit(self, tmp_path):
        """Output on stderr is capped as well."""
        code = (
            "import sys\n"
            "while True:\n"
            "    sys.stderr.write('e' * 65536)\n"
        )
        result = run_python(code, tmp_path, timeout_ms=20000, max_output_bytes=128 * 1024)

        assert result.output_exceeded
        assert result.stderr == OUTPUT_LIMIT_MESSAGE

    def test_output_under_limit_is_kept(self, tmp_path):
        """Output below the cap is returned intact."""
        result = run_python(
            "import sys; sys.stdout.write('y' * 100000)",
            tmp_path,
            max_output_bytes=200000
        )

        assert not result.output_exceeded
        assert result.exit_code == 0
        assert result.stdout == "y" * 100000

    def test_large_stdin_with_unread_input(self, tmp_path):
        """A child that ignores a large stdin still completes normally."""
        result = run_python("print('ok')", tmp_path, stdin="z" * 1_000_000, timeout_ms=5000)

        assert result.exit_code == 0
        assert result.stdout == "ok\n"


@pytest.mark.skipif(platform.system() == "Windows", reason="rlimits are POSIX only")
class TestLimits:
    """Test the rlimits applied in the child."""

    def test_limits_use_preloaded_resource_module(self):
        """The child only calls setrlimit on the already-imported module."""
        with patch("judge.sandbox.resource") as mock_resource:
            _make_limits(2.0, 512)()

        mock_resource.setrlimit.assert_any_call(mock_resource.RLIMIT_CPU, (3, 3))
        mock_resource.setrlimit.assert_any_call(
            mock_resource.RLIMIT_AS, (512 * 1024 * 1024, 512 * 1024 * 1024)
        )

    def test_no_memory_limit_by_default(self):
        """Only the CPU limit is set without a memory limit."""
        with patch("judge.sandbox.resource") as mock_resource:
            _make_limits(1.5, None)()

        mock_resource.setrlimit.assert_called_once_with(mock_resource.RLIMIT_CPU, (2, 2))


class TestSingleResolution:
    """Test the one-shot resolution guard."""

    def test_only_first_claim_wins(self):
        """claim() returns True exactly once."""
        resolution = _Resolution()
        assert resolution.claim("timed_out") is True
        assert resolution.claim("exited") is False
        assert resolution.claim("output_exceeded") is False
        assert resolution.outcome == "timed_out"

    def test_kill_skips_finished_process(self):
        """A process that already exited is not signalled."""
        proc = Mock()
        proc.poll.return_value = 0

        with patch("psutil.Process") as mock_process:
            kill_process_tree(proc)

        proc.kill.assert_not_called()
        mock_process.assert_not_called()

    def test_kill_children_then_parent(self):
        """Children found through psutil are killed along with the parent."""
        proc = Mock(pid=1234)
        proc.poll.return_value = None
        child = Mock()

        with patch("psutil.Process") as mock_process:
            mock_process.return_value.children.return_value = [child]
            kill_process_tree(proc)

        mock_process.assert_called_once_with(1234)
        proc.kill.assert_called_once()
        child.kill.assert_called_once()
