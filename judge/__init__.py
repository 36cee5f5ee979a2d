"""
Java Submission Grading Engine - Judge Package

This package contains the core components for compiling and grading student code:
- models: Data structures for test cases, verdicts and problem banks
- workspace: Per-submission scratch directories
- sandbox: Bounded, killable subprocess execution
- compiler: javac invocation
- evaluator: Test case execution and output comparison
- grader: Verdict aggregation and the grade() entry point
"""

__version__ = "1.0.0"

from .grader import Grader, grade
from .models import GraderConfig, TestCase, TestCaseResult, Verdict, VerdictStatus

__all__ = [
    "Grader",
    "grade",
    "GraderConfig",
    "TestCase",
    "TestCaseResult",
    "Verdict",
    "VerdictStatus",
]
