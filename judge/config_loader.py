"""
Configuration loader for the grading engine.

Handles loading and validating grader configuration files.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .models import GraderConfig

logger = logging.getLogger(__name__)

SCRATCH_ROOT_ENV = "JUDGE_SCRATCH_ROOT"


def default_config_path() -> Path:
    """Return 'judge.json' next to the judge package."""
    return Path(__file__).parent.parent / "judge.json"


def load_config(config_path: Optional[Path] = None) -> GraderConfig:
    """
    Load grader configuration from a JSON file.

    Args:
        config_path: Path to the configuration file. If None, looks for
                    'judge.json' next to the package.

    Returns:
        GraderConfig object with validated configuration. The
        JUDGE_SCRATCH_ROOT environment variable overrides scratch_root.

    Raises:
        ValueError: If config is invalid
    """
    if config_path is None:
        config_path = default_config_path()
    config_path = Path(config_path)

    if not config_path.exists():
        logger.warning("Config file '%s' not found. Using default configuration.", config_path)
        config = GraderConfig.default()
    else:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file: {e}")
        except OSError as e:
            raise ValueError(f"Error reading config file: {e}")

        if not isinstance(data, dict):
            raise ValueError("Invalid configuration: top level must be a JSON object")

        try:
            config = GraderConfig.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid configuration: {e}")

    scratch_override = os.environ.get(SCRATCH_ROOT_ENV)
    if scratch_override:
        config.scratch_root = scratch_override

    is_valid, error_message = config.validate()
    if not is_valid:
        raise ValueError(f"Invalid configuration: {error_message}")

    return config


def create_sample_config(output_path: Path):
    """
    Create a sample configuration file for operators.

    Args:
        output_path: Path where to save the sample config
    """
    sample_config = {
        "scratch_root": "/var/tmp/judge",
        "javac_path": "javac",
        "java_path": "java",
        "javac_args": ["-encoding", "UTF-8"],
        "java_args": ["-Xss64m"],
        "compile_timeout_ms": 10000,
        "test_timeout_ms": 5000,
        "memory_limit_mb": None,
        "max_output_bytes": 4194304,
        "import_preamble": "import java.util.Scanner;",
        "_comment": "This is a sample grader configuration. Adjust values as needed.",
        "_instructions": {
            "scratch_root": "Writable directory where per-submission workspaces are created",
            "javac_path": "Java compiler executable",
            "java_path": "Java runtime executable",
            "javac_args": "Extra compiler arguments",
            "java_args": "Extra runtime arguments, placed before -cp",
            "compile_timeout_ms": "Wall-clock limit for compilation",
            "test_timeout_ms": "Wall-clock limit for each test case (problems may override)",
            "memory_limit_mb": "Address-space limit for test runs, null for none (the JVM reserves a lot of virtual memory)",
            "max_output_bytes": "Combined stdout/stderr bytes a run may write before it is killed",
            "import_preamble": "Lines prepended to every submission"
        }
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(sample_config, f, indent=2)

    print(f"Sample configuration created at: {output_path}")
