"""Tests for the workspace manager."""

import logging
import os
import stat
from unittest.mock import patch

import pytest

from forge.sandbox import WorkspaceManager


class TestAcquireRelease:
    """Test workspace lifecycle."""

    def test_acquire_creates_empty_directory(self, workspace_root):
        manager = WorkspaceManager(workspace_root)
        workspace = manager.acquire()
        assert workspace.root.is_dir()
        assert workspace.root.parent == workspace_root
        assert workspace.root.name.startswith("forge-")
        assert list(workspace.root.iterdir()) == []

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_acquire_is_owner_only(self, workspace_root):
        workspace = WorkspaceManager(workspace_root).acquire()
        mode = stat.S_IMODE(workspace.root.stat().st_mode)
        assert mode & 0o077 == 0

    def test_acquire_never_reuses_paths(self, workspace_root):
        manager = WorkspaceManager(workspace_root)
        paths = {manager.acquire().root for _ in range(50)}
        assert len(paths) == 50

    def test_acquire_creates_missing_root(self, tmp_path):
        manager = WorkspaceManager(tmp_path / "not" / "yet")
        assert manager.acquire().root.is_dir()

    def test_release_removes_tree(self, workspace_root):
        manager = WorkspaceManager(workspace_root)
        workspace = manager.acquire()
        (workspace.root / "sub").mkdir()
        (workspace.root / "sub" / "file.txt").write_text("data")
        manager.release(workspace)
        assert not workspace.root.exists()

    def test_release_is_idempotent(self, workspace_root):
        manager = WorkspaceManager(workspace_root)
        workspace = manager.acquire()
        manager.release(workspace)
        manager.release(workspace)
        assert not workspace.root.exists()

    def test_release_failure_is_logged_not_raised(self, workspace_root, caplog):
        manager = WorkspaceManager(workspace_root)
        workspace = manager.acquire()
        with patch("forge.sandbox.workspace.shutil.rmtree", side_effect=OSError("busy")):
            with caplog.at_level(logging.ERROR, logger="forge.sandbox.workspace"):
                manager.release(workspace)
        assert "Failed to remove workspace" in caplog.text


class TestScoped:
    """Test scoped acquisition."""

    @pytest.mark.asyncio
    async def test_scoped_releases_on_success(self, workspace_root):
        manager = WorkspaceManager(workspace_root)
        async with manager.scoped() as workspace:
            assert workspace.root.is_dir()
        assert not workspace.root.exists()

    @pytest.mark.asyncio
    async def test_scoped_releases_on_exception(self, workspace_root):
        manager = WorkspaceManager(workspace_root)
        with pytest.raises(RuntimeError):
            async with manager.scoped() as workspace:
                raise RuntimeError("boom")
        assert not workspace.root.exists()
        assert manager.active() == []


class TestSweep:
    """Test stale workspace sweeping."""

    def test_sweep_removes_only_prefixed_dirs(self, workspace_root):
        manager = WorkspaceManager(workspace_root, prefix="forge-")
        manager.acquire()
        manager.acquire()
        unrelated = workspace_root / "keep-me"
        unrelated.mkdir()

        assert manager.sweep_stale() == 2
        assert manager.active() == []
        assert unrelated.is_dir()

    def test_sweep_missing_root(self, tmp_path):
        assert WorkspaceManager(tmp_path / "missing").sweep_stale() == 0
