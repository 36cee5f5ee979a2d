"""Pytest configuration and fixtures for judge tests."""

import shutil
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from judge.models import ExecutionResult, GraderConfig


requires_jdk = pytest.mark.skipif(
    not (shutil.which("javac") and shutil.which("java")),
    reason="javac/java not available"
)


class FakeJava:
    """
    Stands in for the bounded process runner.

    javac invocations return compile_result; java invocations call
    program(stdin) and count how many test cases were actually executed.
    """

    def __init__(
        self,
        program: Callable[[str], ExecutionResult],
        compile_result: Optional[ExecutionResult] = None
    ):
        self.program = program
        self.compile_result = compile_result or ExecutionResult(0, "", "")
        self.calls: List[dict] = []
        self.runs = 0

    def __call__(
        self, command, args, cwd, stdin="", timeout_ms=5000, memory_limit_mb=None, max_output_bytes=None
    ):
        self.calls.append({
            "command": command,
            "args": list(args),
            "cwd": cwd,
            "stdin": stdin,
            "timeout_ms": timeout_ms,
            "max_output_bytes": max_output_bytes,
            "cwd_exists": Path(cwd).is_dir(),
        })
        if command == "javac":
            return self.compile_result
        self.runs += 1
        return self.program(stdin)


def echo_upper(stdin: str) -> ExecutionResult:
    return ExecutionResult(0, stdin.upper() + "\n", "")


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    """Scratch directory for workspaces."""
    return tmp_path / "scratch"


@pytest.fixture
def config(scratch_root: Path) -> GraderConfig:
    """Default config pointed at a per-test scratch root."""
    return GraderConfig(scratch_root=str(scratch_root))


@pytest.fixture
def fake_java():
    """Factory for FakeJava runners."""
    return FakeJava
