"""
Compiler invocation for Java submissions.

Rewrites the submitted public class to the workspace's unique class name,
prepends the import preamble and runs javac inside the workspace.
"""

import logging
import re
from typing import Callable

from .models import CompileOutcome, GraderConfig, Workspace, ExecutionResult
from .sandbox import run_command

logger = logging.getLogger(__name__)

COMPILE_TIMEOUT_MESSAGE = "Timeout: Compilation took too long"

_PUBLIC_CLASS_RE = re.compile(r"public\s+class\s+\w+(\s*\{)")


def prepare_source(source_code: str, class_name: str, preamble: str = "") -> str:
    """
    Rename the first public class to class_name and prepend the preamble.

    Args:
        source_code: Source text as submitted
        class_name: Workspace-unique class name
        preamble: Import lines injected ahead of the submission

    Returns:
        Source text ready to be written as <class_name>.java
    """
    renamed = _PUBLIC_CLASS_RE.sub(
        lambda m: f"public class {class_name}{m.group(1)}",
        source_code,
        count=1
    )
    if not preamble:
        return renamed
    return f"{preamble}\n\n{renamed}"


def compile_source(
    workspace: Workspace,
    source_code: str,
    config: GraderConfig,
    runner: Callable[..., ExecutionResult] = run_command
) -> CompileOutcome:
    """
    Write the submission into the workspace and compile it.

    The file is passed to javac by relative name so diagnostics never
    reveal the workspace location.

    Returns:
        CompileOutcome with javac's diagnostics on failure
    """
    source = prepare_source(source_code, workspace.class_name, config.import_preamble)
    workspace.source_path.write_text(source, encoding='utf-8')

    result = runner(
        config.javac_path,
        [*config.javac_args, workspace.source_path.name],
        cwd=str(workspace.path),
        stdin="",
        timeout_ms=config.compile_timeout_ms,
        max_output_bytes=config.max_output_bytes
    )

    if result.timed_out:
        logger.warning("Compilation of %s timed out", workspace.class_name)
        return CompileOutcome(success=False, diagnostics=COMPILE_TIMEOUT_MESSAGE)

    if result.exit_code != 0:
        diagnostics = result.stderr or result.stdout
        logger.info("Compilation of %s failed with exit code %d", workspace.class_name, result.exit_code)
        return CompileOutcome(success=False, diagnostics=diagnostics)

    return CompileOutcome(success=True, diagnostics=result.stderr)
