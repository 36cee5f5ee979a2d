"""
Tests for workspace module.

Tests allocation, uniqueness and guaranteed cleanup of scratch workspaces.
"""

import pytest
from unittest.mock import patch

from judge import workspace as workspace_module
from judge.workspace import acquire, new_token, release, workspace


class TestTokens:
    """Test random token generation."""

    def test_token_is_base36(self):
        """Tokens only use lowercase letters and digits."""
        token = new_token()
        assert len(token) == 12
        assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in token)

    def test_tokens_are_unique(self):
        """A batch of tokens has no duplicates."""
        tokens = {new_token() for _ in range(1000)}
        assert len(tokens) == 1000


class TestAcquireRelease:
    """Test workspace lifecycle."""

    def test_acquire_creates_directory(self, scratch_root):
        """acquire() creates the scratch root and a token-named directory."""
        ws = acquire(scratch_root)

        assert ws.path.is_dir()
        assert ws.path.parent == scratch_root
        assert ws.path.name == f"grade_{ws.token}"

    def test_concurrent_workspaces_do_not_collide(self, scratch_root):
        """Two workspaces never share a directory or class name."""
        first = acquire(scratch_root)
        second = acquire(scratch_root)

        assert first.path != second.path
        assert first.class_name != second.class_name

    def test_retries_on_collision(self, scratch_root):
        """An existing directory with the same token is skipped."""
        scratch_root.mkdir(parents=True)
        (scratch_root / "grade_taken").mkdir()

        with patch.object(workspace_module, "new_token", side_effect=["taken", "fresh"]):
            ws = acquire(scratch_root)

        assert ws.token == "fresh"

    def test_release_removes_everything(self, scratch_root):
        """release() deletes the directory and its files."""
        ws = acquire(scratch_root)
        ws.source_path.write_text("class X {}")
        ws.input_path(0).write_text("1")

        release(ws)

        assert not ws.path.exists()
        assert list(scratch_root.iterdir()) == []

    def test_release_is_idempotent(self, scratch_root):
        """Releasing twice is harmless."""
        ws = acquire(scratch_root)
        release(ws)
        release(ws)
        assert not ws.path.exists()

    def test_release_swallows_errors(self, scratch_root):
        """Cleanup failures are logged, not raised."""
        ws = acquire(scratch_root)
        with patch("shutil.rmtree", side_effect=PermissionError("denied")):
            release(ws)
        assert ws.path.exists()


class TestWorkspaceContext:
    """Test the workspace() context manager."""

    def test_cleanup_on_success(self, scratch_root):
        """The workspace is gone after a normal exit."""
        with workspace(scratch_root) as ws:
            ws.source_path.write_text("x")
            assert ws.path.exists()
        assert not ws.path.exists()

    def test_cleanup_on_exception(self, scratch_root):
        """The workspace is gone even when the body raises."""
        with pytest.raises(RuntimeError):
            with workspace(scratch_root) as ws:
                raise RuntimeError("boom")
        assert not ws.path.exists()
