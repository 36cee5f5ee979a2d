"""
Per-submission scratch workspaces.

Each grading run owns one directory named after a random base36 token.
The same token is embedded in the generated class and file names so that
concurrent runs never collide on disk or in the compiler's class lookup.
"""

import logging
import secrets
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from .models import Workspace

logger = logging.getLogger(__name__)

TOKEN_LENGTH = 12
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def new_token(length: int = TOKEN_LENGTH) -> str:
    """Return a random lowercase base36 string."""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def acquire(scratch_root: Union[str, Path]) -> Workspace:
    """
    Allocate a fresh workspace directory under scratch_root.

    Args:
        scratch_root: Host-supplied writable directory

    Returns:
        The new Workspace

    Raises:
        OSError: If the directory cannot be created (e.g. disk full)
    """
    root = Path(scratch_root)
    root.mkdir(parents=True, exist_ok=True)

    while True:
        token = new_token()
        path = root / f"grade_{token}"
        try:
            path.mkdir()
        except FileExistsError:
            continue
        logger.debug("Acquired workspace %s", path)
        return Workspace(token=token, path=path)


def release(workspace: Workspace) -> None:
    """
    Remove a workspace and everything in it.

    Safe to call more than once. Failures are logged, never raised.
    """
    try:
        shutil.rmtree(workspace.path)
        logger.debug("Released workspace %s", workspace.path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Workspace cleanup failed for %s: %s", workspace.path, e)


@contextmanager
def workspace(scratch_root: Union[str, Path]) -> Iterator[Workspace]:
    """Acquire a workspace for the duration of a with-block."""
    ws = acquire(scratch_root)
    try:
        yield ws
    finally:
        release(ws)
