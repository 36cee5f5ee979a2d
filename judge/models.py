"""
Data models for the grading engine.

Provides type-safe structures for test cases, workspaces, execution
results, verdicts, grader configuration and problem banks.
"""

import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict, Any, Tuple


DEFAULT_TEST_TIMEOUT_MS = 5000
DEFAULT_COMPILE_TIMEOUT_MS = 10000
DEFAULT_MAX_OUTPUT_BYTES = 4 * 1024 * 1024
DEFAULT_IMPORT_PREAMBLE = "import java.util.Scanner;"


@dataclass(frozen=True)
class TestCase:
    """A single stdin/stdout test case."""
    __test__ = False  # not a pytest class

    input: str = ""
    expected_output: str = ""

    @staticmethod
    def from_dict(data: dict) -> 'TestCase':
        """
        Create a TestCase from a dictionary.

        Accepts both the camelCase keys stored by the submission service
        (``input``/``expectedOutput``) and snake_case keys.
        """
        if 'expectedOutput' in data:
            expected = data['expectedOutput']
        elif 'expected_output' in data:
            expected = data['expected_output']
        else:
            expected = data.get('output', '')

        return TestCase(
            input=data.get('input') or "",
            expected_output=expected or ""
        )


@dataclass(frozen=True)
class Workspace:
    """Scratch directory exclusively owned by one grading run."""
    token: str
    path: Path

    @property
    def class_name(self) -> str:
        return f"Solution_{self.token}"

    @property
    def source_path(self) -> Path:
        return self.path / f"{self.class_name}.java"

    @property
    def artifact_path(self) -> Path:
        return self.path / f"{self.class_name}.class"

    def input_path(self, index: int) -> Path:
        return self.path / f"input_{index}.txt"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one bounded subprocess invocation."""
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False
    output_exceeded: bool = False

    @property
    def succeeded(self) -> bool:
        """True if the process exited with code 0 before its deadline."""
        return self.exit_code == 0 and not self.timed_out and not self.output_exceeded


@dataclass(frozen=True)
class CompileOutcome:
    """Result of invoking the compiler."""
    success: bool
    diagnostics: str = ""


@dataclass(frozen=True)
class TestCaseResult:
    """Per-test-case record kept for diagnostics."""
    __test__ = False  # not a pytest class

    input: str
    expected_output: str
    actual_output: str
    passed: bool
    execution_time_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input": self.input,
            "expectedOutput": self.expected_output,
            "actualOutput": self.actual_output,
            "passed": self.passed,
            "executionTime": self.execution_time_ms,
        }


class FailureKind(Enum):
    """Why grading stopped before every test case passed."""
    COMPILE = "compile"
    RUNTIME = "runtime"  # includes per-test timeouts
    MISMATCH = "mismatch"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True)
class Failure:
    """First failure observed during a grading run."""
    kind: FailureKind
    message: str


class VerdictStatus(str, Enum):
    """Terminal grading states."""
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class Verdict:
    """
    Final grading result returned to the caller.

    Attributes:
        status: One of passed, failed or error
        output: Summary text ("All N test cases passed!" or the passed-case lines)
        error: Diagnostic text, None if and only if status is passed
        execution_time_ms: Wall-clock time spent running test cases
        test_case_results: Ordered results of every executed test case
    """
    status: VerdictStatus
    output: str
    error: Optional[str]
    execution_time_ms: int
    test_case_results: Tuple[TestCaseResult, ...] = ()

    @property
    def passed(self) -> bool:
        return self.status is VerdictStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the verdict into the shape stored as a submission record."""
        return {
            "status": self.status.value,
            "output": self.output,
            "error": self.error,
            "executionTime": self.execution_time_ms,
            "testCaseResults": [r.to_dict() for r in self.test_case_results],
        }


def _default_scratch_root() -> str:
    return os.path.join(tempfile.gettempdir(), "judge")


@dataclass
class GraderConfig:
    """
    Configuration for the grading engine.

    Attributes:
        scratch_root: Directory under which per-run workspaces are created
        javac_path: Compiler executable
        java_path: Runtime executable
        javac_args: Extra arguments passed to the compiler
        java_args: Extra arguments passed to the runtime (before -cp)
        compile_timeout_ms: Wall-clock budget for compilation
        test_timeout_ms: Wall-clock budget for each test case
        memory_limit_mb: Address-space limit for child processes (None = unlimited)
        max_output_bytes: Combined stdout/stderr byte cap per process (killed when exceeded)
        import_preamble: Source text prepended to every submission
    """
    scratch_root: str = field(default_factory=_default_scratch_root)
    javac_path: str = "javac"
    java_path: str = "java"
    javac_args: List[str] = field(default_factory=list)
    java_args: List[str] = field(default_factory=list)
    compile_timeout_ms: int = DEFAULT_COMPILE_TIMEOUT_MS
    test_timeout_ms: int = DEFAULT_TEST_TIMEOUT_MS
    memory_limit_mb: Optional[int] = None
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    import_preamble: str = DEFAULT_IMPORT_PREAMBLE

    @staticmethod
    def from_dict(data: dict) -> 'GraderConfig':
        """Create GraderConfig from dictionary."""
        memory_limit = data.get('memory_limit_mb')
        return GraderConfig(
            scratch_root=data.get('scratch_root') or _default_scratch_root(),
            javac_path=data.get('javac_path', 'javac'),
            java_path=data.get('java_path', 'java'),
            javac_args=list(data.get('javac_args', [])),
            java_args=list(data.get('java_args', [])),
            compile_timeout_ms=int(data.get('compile_timeout_ms', DEFAULT_COMPILE_TIMEOUT_MS)),
            test_timeout_ms=int(data.get('test_timeout_ms', DEFAULT_TEST_TIMEOUT_MS)),
            memory_limit_mb=int(memory_limit) if memory_limit is not None else None,
            max_output_bytes=int(data.get('max_output_bytes', DEFAULT_MAX_OUTPUT_BYTES)),
            import_preamble=data.get('import_preamble', DEFAULT_IMPORT_PREAMBLE),
        )

    def validate(self) -> tuple[bool, str]:
        """
        Validate configuration consistency.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not self.javac_path or not self.java_path:
            return False, "javac_path and java_path must not be empty"

        if self.compile_timeout_ms <= 0:
            return False, f"compile_timeout_ms must be positive, got {self.compile_timeout_ms}"

        if self.test_timeout_ms <= 0:
            return False, f"test_timeout_ms must be positive, got {self.test_timeout_ms}"

        if self.memory_limit_mb is not None and self.memory_limit_mb <= 0:
            return False, f"memory_limit_mb must be positive or null, got {self.memory_limit_mb}"

        if self.max_output_bytes <= 0:
            return False, f"max_output_bytes must be positive, got {self.max_output_bytes}"

        return True, ""

    @staticmethod
    def default() -> 'GraderConfig':
        """Return the default configuration."""
        return GraderConfig()


@dataclass
class Problem:
    """A gradable problem and its hidden test cases."""
    id: str
    title: str
    points: int
    test_cases: List[TestCase]
    difficulty: str = "easy"
    time_limit_ms: Optional[int] = None

    @staticmethod
    def from_dict(data: dict) -> 'Problem':
        """Create a Problem from a dictionary (``timeLimit`` is in seconds)."""
        raw_tests = data.get('testCases', data.get('test_cases', []))

        time_limit_ms = data.get('time_limit_ms')
        if time_limit_ms is None and data.get('timeLimit') is not None:
            time_limit_ms = int(float(data['timeLimit']) * 1000)

        return Problem(
            id=str(data['id']),
            title=data.get('title', ''),
            points=int(data.get('points', 0)),
            test_cases=[TestCase.from_dict(t) for t in raw_tests],
            difficulty=data.get('difficulty', 'easy'),
            time_limit_ms=int(time_limit_ms) if time_limit_ms is not None else None,
        )

    def points_for(self, verdict: Verdict) -> int:
        """Points earned by a verdict: all of them on pass, none otherwise."""
        return self.points if verdict.passed else 0


@dataclass
class ProblemBank:
    """A versioned collection of problems."""
    group: str
    version: str
    problems: List[Problem]

    @staticmethod
    def from_dict(data: dict) -> 'ProblemBank':
        """Create a ProblemBank from a dictionary."""
        return ProblemBank(
            group=data.get('group', ''),
            version=str(data.get('version', '')),
            problems=[Problem.from_dict(p) for p in data['problems']]
        )

    def get_problem(self, problem_id: str) -> Optional[Problem]:
        """Return the problem with the given ID, or None."""
        for problem in self.problems:
            if problem.id == str(problem_id):
                return problem
        return None
