"""
Test case evaluation.

Runs the compiled submission once per test case, in order, and stops at
the first runtime error, timeout or output mismatch.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from .models import (
    ExecutionResult,
    Failure,
    FailureKind,
    GraderConfig,
    TestCase,
    TestCaseResult,
    Workspace,
)
from .sandbox import run_command

logger = logging.getLogger(__name__)


def normalize_output(text: str) -> str:
    """
    Strip trailing line terminators only.

    Trailing spaces, internal whitespace and blank lines stay significant.
    """
    return text.rstrip("\r\n")


def describe_mismatch(case_number: int, expected: str, actual: str) -> str:
    """
    Describe where two normalized outputs diverge.

    Reports a line-count mismatch if the counts differ, otherwise the first
    differing line with both versions verbatim.

    Raises:
        ValueError: If the outputs do not differ
    """
    expected_lines = expected.split("\n")
    actual_lines = actual.split("\n")

    if len(expected_lines) != len(actual_lines):
        return (
            f"Test Case {case_number} Failed - Expected {len(expected_lines)} line(s), "
            f"got {len(actual_lines)} line(s)"
        )

    for line_number, (exp, act) in enumerate(zip(expected_lines, actual_lines), start=1):
        if exp != act:
            return (
                f"Test Case {case_number} Failed - Line {line_number}: "
                f"Expected \"{exp}\", Got \"{act}\""
            )

    raise ValueError(f"Test Case {case_number} outputs are identical")


def _scrub(text: str, workspace: Workspace) -> str:
    """Remove the workspace location from text shown to the caller."""
    return text.replace(str(workspace.path) + "/", "").replace(str(workspace.path), "")


def evaluate(
    workspace: Workspace,
    class_name: str,
    test_cases: Sequence[TestCase],
    config: GraderConfig,
    runner: Callable[..., ExecutionResult] = run_command,
    timeout_ms: Optional[int] = None,
    results: Optional[List[TestCaseResult]] = None
) -> Tuple[List[TestCaseResult], Optional[Failure]]:
    """
    Run every test case in order until the first failure.

    Args:
        workspace: Workspace holding the compiled class
        class_name: Entry class to launch
        test_cases: Ordered test cases
        config: Grader configuration (runtime path and default timeout)
        runner: Bounded process runner
        timeout_ms: Per-case timeout overriding config.test_timeout_ms
        results: List to append results to, so callers keep partial
            results if evaluation raises

    Returns:
        Tuple of (results so far, first failure or None)

    Raises:
        ValueError: If the per-case timeout is not positive
    """
    per_case_timeout = config.test_timeout_ms if timeout_ms is None else timeout_ms
    if per_case_timeout <= 0:
        raise ValueError(f"timeout_ms must be positive, got {per_case_timeout}")
    if results is None:
        results = []

    for i, test_case in enumerate(test_cases):
        case_number = i + 1
        stdin = test_case.input or ""
        workspace.input_path(i).write_text(stdin, encoding='utf-8')

        start_time = time.monotonic()
        execution = runner(
            config.java_path,
            [*config.java_args, "-cp", str(workspace.path), class_name],
            cwd=str(workspace.path),
            stdin=stdin,
            timeout_ms=per_case_timeout,
            memory_limit_mb=config.memory_limit_mb,
            max_output_bytes=config.max_output_bytes
        )
        elapsed_ms = int((time.monotonic() - start_time) * 1000)

        if not execution.succeeded:
            error_text = _scrub(execution.stderr, workspace)
            results.append(TestCaseResult(
                input=test_case.input,
                expected_output=test_case.expected_output,
                actual_output=error_text,
                passed=False,
                execution_time_ms=elapsed_ms
            ))
            if execution.timed_out:
                logger.info("Test case %d of %s timed out", case_number, class_name)
            elif execution.output_exceeded:
                logger.info("Test case %d of %s exceeded the output limit", case_number, class_name)
            return results, Failure(
                FailureKind.RUNTIME,
                f"Runtime Error in Test Case {case_number}: {error_text}"
            )

        actual = normalize_output(execution.stdout)
        expected = normalize_output(test_case.expected_output)
        passed = actual == expected

        results.append(TestCaseResult(
            input=test_case.input,
            expected_output=test_case.expected_output,
            actual_output=actual,
            passed=passed,
            execution_time_ms=elapsed_ms
        ))

        if not passed:
            return results, Failure(
                FailureKind.MISMATCH,
                describe_mismatch(case_number, expected, actual)
            )

    return results, None
