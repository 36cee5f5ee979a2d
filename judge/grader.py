"""
Grader module: the engine's single entry point.

Provides the Grader class which orchestrates workspace allocation,
compilation and test execution, and folds the outcome into one Verdict.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence, Union

from .compiler import compile_source
from .evaluator import evaluate
from .models import (
    ExecutionResult,
    Failure,
    FailureKind,
    GraderConfig,
    TestCase,
    TestCaseResult,
    Verdict,
    VerdictStatus,
)
from .sandbox import run_command
from .workspace import acquire, release

logger = logging.getLogger(__name__)

COMPILE_ERROR_PREFIX = "Compilation Error: "
EXECUTION_ERROR_PREFIX = "Execution Error: "
INTERNAL_FAILURE_MESSAGE = EXECUTION_ERROR_PREFIX + "Internal grading failure"


def aggregate(
    results: Sequence[TestCaseResult],
    failure: Optional[Failure],
    elapsed_ms: int
) -> Verdict:
    """
    Combine evaluation output into a Verdict.

    Args:
        results: Ordered test case results (may be partial)
        failure: First failure, or None if every case passed
        elapsed_ms: Time spent executing test cases

    Returns:
        passed when there is no failure, failed on an output mismatch,
        error for compile, runtime, timeout and infrastructure failures
    """
    results = tuple(results)

    if failure is None:
        return Verdict(
            status=VerdictStatus.PASSED,
            output=f"All {len(results)} test cases passed!",
            error=None,
            execution_time_ms=elapsed_ms,
            test_case_results=results
        )

    output = "".join(
        f"Test Case {i}: Passed\n"
        for i, result in enumerate(results, start=1)
        if result.passed
    )
    status = VerdictStatus.FAILED if failure.kind is FailureKind.MISMATCH else VerdictStatus.ERROR

    return Verdict(
        status=status,
        output=output,
        error=failure.message,
        execution_time_ms=elapsed_ms,
        test_case_results=results
    )


def _as_test_cases(test_cases: Iterable[Union[TestCase, dict]]) -> List[TestCase]:
    return [tc if isinstance(tc, TestCase) else TestCase.from_dict(tc) for tc in test_cases]


class Grader:
    """Compiles and grades Java submissions against stdin/stdout test cases."""

    def __init__(
        self,
        config: Optional[GraderConfig] = None,
        runner: Callable[..., ExecutionResult] = run_command
    ):
        """
        Args:
            config: Grader configuration, defaults to GraderConfig.default()
            runner: Bounded process runner used for javac and java
        """
        self.config = config or GraderConfig.default()
        self.runner = runner

    def grade(
        self,
        source_code: str,
        test_cases: Iterable[Union[TestCase, dict]],
        timeout_ms: Optional[int] = None
    ) -> Verdict:
        """
        Grade a submission.

        Args:
            source_code: Java source text
            test_cases: Ordered test cases (TestCase objects or dicts)
            timeout_ms: Per-test-case timeout overriding the configured one

        Returns:
            A complete Verdict

        Raises:
            ValueError: If timeout_ms is given and not positive
            OSError: If no workspace can be allocated
        """
        if timeout_ms is not None and timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {timeout_ms}")

        cases = _as_test_cases(test_cases)
        ws = acquire(self.config.scratch_root)
        results: List[TestCaseResult] = []
        start_time = None
        try:
            outcome = compile_source(ws, source_code, self.config, runner=self.runner)
            if not outcome.success:
                return aggregate(
                    [],
                    Failure(FailureKind.COMPILE, COMPILE_ERROR_PREFIX + outcome.diagnostics),
                    0
                )

            start_time = time.monotonic()
            _, failure = evaluate(
                ws,
                ws.class_name,
                cases,
                self.config,
                runner=self.runner,
                timeout_ms=timeout_ms,
                results=results
            )
            elapsed_ms = int((time.monotonic() - start_time) * 1000)
            return aggregate(results, failure, elapsed_ms)

        except Exception:
            logger.exception("Grading failed in workspace %s", ws.path)
            elapsed_ms = int((time.monotonic() - start_time) * 1000) if start_time is not None else 0
            return aggregate(
                results,
                Failure(FailureKind.INFRASTRUCTURE, INTERNAL_FAILURE_MESSAGE),
                elapsed_ms
            )
        finally:
            release(ws)

    # ===== UTILITY METHODS =====

    def format_verdict(self, verdict: Verdict, show_details: bool = False) -> str:
        """
        Format a verdict for terminal display.

        Args:
            verdict: Verdict returned by grade()
            show_details: If True, show inputs and outputs of failed cases

        Returns:
            Formatted multi-line string
        """
        lines = []
        for i, result in enumerate(verdict.test_case_results, start=1):
            if result.passed:
                lines.append(f"  Test {i}: PASSED ({result.execution_time_ms} ms)")
                continue

            lines.append(f"  Test {i}: FAILED ({result.execution_time_ms} ms)")
            if show_details:
                lines.append(f"    Input:    {result.input!r}"[:120])
                lines.append(f"    Expected: {result.expected_output!r}"[:120])
                lines.append(f"    Got:      {result.actual_output!r}"[:120])

        lines.append("")
        lines.append(f"Status: {verdict.status.value.upper()}")
        if verdict.output:
            lines.append(verdict.output.rstrip("\n"))
        if verdict.error:
            lines.append(verdict.error.rstrip("\n"))
        lines.append(f"Execution time: {verdict.execution_time_ms} ms")
        return "\n".join(lines)


def grade(
    source_code: str,
    test_cases: Iterable[Union[TestCase, dict]],
    config: Optional[GraderConfig] = None,
    timeout_ms: Optional[int] = None
) -> Verdict:
    """Grade a submission with a one-off Grader."""
    return Grader(config).grade(source_code, test_cases, timeout_ms=timeout_ms)
