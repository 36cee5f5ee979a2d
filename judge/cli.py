"""
Command-line interface for grading Java submissions.

    python main.py grade Solution.java --bank banks/group1.enc --problem 3 --password
    python main.py grade Solution.java --tests tests.json --json
    python main.py verify banks/group1.json
    python main.py init-config judge.json
"""

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config_loader import create_sample_config, load_config
from .grader import Grader
from .models import TestCase
from .problems import decrypt_bank, load_bank, validate_bank_dict

EXIT_PASSED = 0
EXIT_NOT_PASSED = 1
EXIT_USAGE = 2


def _read_credentials(args) -> tuple:
    """Return (key, password) from --key-file / --password."""
    key = None
    password = None
    if getattr(args, 'key_file', None):
        key = Path(args.key_file).read_bytes().strip()
    if getattr(args, 'password', False):
        password = getpass.getpass("Enter bank password: ").strip()
    return key, password


def _load_test_cases(tests_path: Path) -> List[TestCase]:
    with open(tests_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('testCases', data.get('test_cases', []))
    if not isinstance(data, list):
        raise ValueError("Test file must contain a list of test cases")
    return [TestCase.from_dict(t) for t in data]


def cmd_grade(args) -> int:
    """Grade one source file."""
    config = load_config(Path(args.config) if args.config else None)
    source_code = Path(args.source).read_text(encoding='utf-8')

    timeout_ms = None
    problem = None
    if args.tests:
        test_cases = _load_test_cases(Path(args.tests))
    else:
        if not args.problem:
            raise ValueError("--problem is required with --bank")
        key, password = _read_credentials(args)
        bank = load_bank(args.bank, key=key, password=password)
        problem = bank.get_problem(args.problem)
        if problem is None:
            raise ValueError(f"Problem '{args.problem}' not found in bank")
        test_cases = problem.test_cases
        timeout_ms = problem.time_limit_ms

    if args.timeout_ms is not None:
        timeout_ms = args.timeout_ms

    grader = Grader(config)
    verdict = grader.grade(source_code, test_cases, timeout_ms=timeout_ms)

    if args.json:
        payload = verdict.to_dict()
        if problem is not None:
            payload["pointsEarned"] = problem.points_for(verdict)
        print(json.dumps(payload, indent=2))
    else:
        print(f"Running {len(test_cases)} test case(s)...")
        print(grader.format_verdict(verdict, show_details=args.details))
        if problem is not None:
            print(f"Points earned: {problem.points_for(verdict)}/{problem.points}")

    return EXIT_PASSED if verdict.passed else EXIT_NOT_PASSED


def cmd_verify(args) -> int:
    """Validate a problem bank and print a summary."""
    bank_path = Path(args.bank)
    raw = bank_path.read_bytes()
    if bank_path.suffix.lower() != '.json':
        key, password = _read_credentials(args)
        raw = decrypt_bank(raw, key=key, password=password)
        print("[OK] Bank decrypted successfully")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}")

    errors, warnings = validate_bank_dict(data)
    for warning in warnings:
        print(f"[WARN] {warning}")
    for error in errors:
        print(f"[ERROR] {error}")
    if errors:
        return EXIT_NOT_PASSED

    problems = data['problems']
    total_tests = sum(len(p.get('testCases', p.get('test_cases', []))) for p in problems)
    print(f"[OK] Group: {data.get('group', 'unknown')}")
    print(f"[OK] Version: {data.get('version', 'unknown')}")
    print(f"[OK] {len(problems)} problem(s), {total_tests} test case(s)")
    return EXIT_PASSED


def cmd_init_config(args) -> int:
    """Write a sample configuration file."""
    create_sample_config(Path(args.out))
    return EXIT_PASSED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="judge",
        description="Compile and grade Java submissions against stdin/stdout test cases.",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    grade_parser = subparsers.add_parser("grade", help="Grade a Java source file")
    grade_parser.add_argument("source", help="Path to the Java source file")
    source_group = grade_parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--bank", help="Problem bank (.json or encrypted)")
    source_group.add_argument("--tests", help="JSON file with a list of {input, expectedOutput}")
    grade_parser.add_argument("--problem", help="Problem ID inside the bank")
    grade_parser.add_argument("--key-file", help="Fernet key file for an encrypted bank")
    grade_parser.add_argument("--password", action="store_true", help="Prompt for the bank password")
    grade_parser.add_argument("--config", help="Grader configuration file (default: judge.json)")
    grade_parser.add_argument("--timeout-ms", type=int, help="Per-test-case timeout override")
    grade_parser.add_argument("--json", action="store_true", help="Print the verdict as JSON")
    grade_parser.add_argument("--details", action="store_true", help="Show inputs and outputs of failed cases")
    grade_parser.set_defaults(func=cmd_grade)

    verify_parser = subparsers.add_parser("verify", help="Validate a problem bank")
    verify_parser.add_argument("bank", help="Problem bank (.json or encrypted)")
    verify_parser.add_argument("--key-file", help="Fernet key file for an encrypted bank")
    verify_parser.add_argument("--password", action="store_true", help="Prompt for the bank password")
    verify_parser.set_defaults(func=cmd_verify)

    init_parser = subparsers.add_parser("init-config", help="Write a sample configuration file")
    init_parser.add_argument("out", help="Output path")
    init_parser.set_defaults(func=cmd_init_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the judge CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        return args.func(args)
    except (ValueError, OSError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return EXIT_USAGE
    except (KeyboardInterrupt, EOFError):
        print("\nAborted.", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
