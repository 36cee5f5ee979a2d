"""
Bounded process runner for compiled submissions.

Spawns a child process, feeds it stdin, and races its completion against
a wall-clock timer and an output budget. Whichever finishes first claims
the result; on timeout or excess output the whole process tree is killed
with SIGKILL via psutil.
Unix: Also applies CPU time and (optionally) address-space limits.
"""

import logging
import platform
import subprocess
import threading
from functools import partial
from typing import List, Optional, Sequence

import psutil

from .models import DEFAULT_MAX_OUTPUT_BYTES, ExecutionResult

if platform.system() != "Windows":
    import resource

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 1
SPAWN_ERROR_EXIT_CODE = 1
OUTPUT_LIMIT_EXIT_CODE = 1
TIMEOUT_MESSAGE = "Timeout: Code execution took too long"
OUTPUT_LIMIT_MESSAGE = "Output limit exceeded"

_READ_CHUNK = 64 * 1024

# Resolution outcomes
EXITED = "exited"
TIMED_OUT = "timed_out"
OUTPUT_EXCEEDED = "output_exceeded"


class _Resolution:
    """One-shot guard: only the first caller of claim() wins."""

    def __init__(self):
        self._lock = threading.Lock()
        self.outcome: Optional[str] = None

    def claim(self, outcome: str) -> bool:
        with self._lock:
            if self.outcome is not None:
                return False
            self.outcome = outcome
            return True


class _OutputBudget:
    """Byte budget shared by the stdout and stderr readers."""

    def __init__(self, limit: int):
        self._lock = threading.Lock()
        self._remaining = limit

    def take(self, size: int) -> bool:
        """Consume size bytes. Returns False once the budget is overdrawn."""
        with self._lock:
            self._remaining -= size
            return self._remaining >= 0


def _make_limits(timeout_sec: float, memory_limit_mb: Optional[int]):
    """Build a preexec_fn applying rlimits in the child (Unix only)."""
    def set_limits():
        try:
            cpu = int(timeout_sec) + 1
            resource.setrlimit(resource.RLIMIT_CPU, (cpu, cpu))
        except (ValueError, OSError):
            pass

        if memory_limit_mb is not None:
            try:
                memory_bytes = memory_limit_mb * 1024 * 1024
                resource.setrlimit(resource.RLIMIT_AS, (memory_bytes, memory_bytes))
            except (ValueError, OSError):
                pass
    return set_limits


def _feed_stdin(stream, data: bytes) -> None:
    """Write data to the child's stdin and close it."""
    try:
        if data:
            stream.write(data)
        stream.close()
    except BrokenPipeError:
        # Child exited without reading its input
        pass


def _drain(stream, chunks: List[bytes], budget: _OutputBudget, on_overflow) -> None:
    """Read a pipe to EOF, keeping chunks only while the budget lasts."""
    overflowed = False
    with stream:
        for chunk in iter(partial(stream.read1, _READ_CHUNK), b""):
            if overflowed:
                continue
            if budget.take(len(chunk)):
                chunks.append(chunk)
            else:
                overflowed = True
                on_overflow()


def kill_process_tree(proc: subprocess.Popen) -> None:
    """Forcefully kill a child process and all of its descendants."""
    if proc.poll() is not None:
        return

    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    proc.kill()
    for child in children:
        try:
            child.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass


def run_command(
    command: str,
    args: Sequence[str],
    cwd: str,
    stdin: str = "",
    timeout_ms: int = 5000,
    memory_limit_mb: Optional[int] = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
) -> ExecutionResult:
    """
    Run a command with stdin, a hard wall-clock deadline and an output cap.

    Args:
        command: Executable to spawn
        args: Arguments for the executable
        cwd: Working directory for the child
        stdin: Text written to the child's stdin before it is closed
        timeout_ms: Wall-clock budget in milliseconds
        memory_limit_mb: Address-space limit in MB (Unix only, None = unlimited)
        max_output_bytes: Combined stdout and stderr bytes kept before the
            process tree is killed

    Returns:
        ExecutionResult. Exactly one of the real outcome, the timeout
        outcome or the output-limit outcome is ever returned.
    """
    argv: List[str] = [command, *args]
    timeout_sec = timeout_ms / 1000.0

    popen_kwargs = {}
    if platform.system() != "Windows":
        popen_kwargs["preexec_fn"] = _make_limits(timeout_sec, memory_limit_mb)

    try:
        proc = subprocess.Popen(
            argv,
            cwd=cwd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **popen_kwargs
        )
    except OSError as e:
        logger.error("Failed to spawn %s: %s", command, e)
        return ExecutionResult(
            exit_code=SPAWN_ERROR_EXIT_CODE,
            stdout="",
            stderr=e.strerror or str(e)
        )

    resolution = _Resolution()

    def on_timeout():
        if resolution.claim(TIMED_OUT):
            logger.warning("Killing pid %d after %d ms", proc.pid, timeout_ms)
            kill_process_tree(proc)

    def on_overflow():
        if resolution.claim(OUTPUT_EXCEEDED):
            logger.warning("Killing pid %d after %d bytes of output", proc.pid, max_output_bytes)
            kill_process_tree(proc)

    budget = _OutputBudget(max_output_bytes)
    stdout_chunks: List[bytes] = []
    stderr_chunks: List[bytes] = []
    workers = [
        threading.Thread(target=_feed_stdin, args=(proc.stdin, stdin.encode('utf-8')), daemon=True),
        threading.Thread(target=_drain, args=(proc.stdout, stdout_chunks, budget, on_overflow), daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, stderr_chunks, budget, on_overflow), daemon=True),
    ]

    timer = threading.Timer(timeout_sec, on_timeout)
    timer.daemon = True
    timer.start()
    try:
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        proc.wait()
    finally:
        timer.cancel()

    if not resolution.claim(EXITED):
        if resolution.outcome == OUTPUT_EXCEEDED:
            return ExecutionResult(
                exit_code=OUTPUT_LIMIT_EXIT_CODE,
                stdout="",
                stderr=OUTPUT_LIMIT_MESSAGE,
                output_exceeded=True
            )
        return ExecutionResult(
            exit_code=TIMEOUT_EXIT_CODE,
            stdout="",
            stderr=TIMEOUT_MESSAGE,
            timed_out=True
        )

    return ExecutionResult(
        exit_code=proc.returncode,
        stdout=b"".join(stdout_chunks).decode('utf-8', errors='replace'),
        stderr=b"".join(stderr_chunks).decode('utf-8', errors='replace')
    )
