"""Ephemeral per-execution scratch directories."""

from __future__ import annotations

import logging
import shutil
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    root: Path
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def path(self, name: str) -> Path:
        return self.root / name


class WorkspaceManager:
    """Creates and removes workspaces under a common parent directory.

    Directory names carry a random uuid4, never a counter, so a workspace
    path cannot be guessed from another tenant's and is never handed out
    twice. Release failures are logged and swallowed.
    """

    def __init__(self, root: str | Path, prefix: str = "forge-") -> None:
        self.root = Path(root)
        self.prefix = prefix

    def acquire(self) -> Workspace:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / f"{self.prefix}{uuid.uuid4().hex}"
        # never reuse an existing path
        path.mkdir(mode=0o700, exist_ok=False)
        logger.debug("workspace acquired path=%s", path)
        return Workspace(root=path)

    def release(self, workspace: Workspace) -> None:
        if not workspace.root.exists():
            return
        try:
            shutil.rmtree(workspace.root)
            logger.debug("workspace released path=%s", workspace.root)
        except OSError as e:
            logger.error("Failed to remove workspace %s: %s", workspace.root, e)

    @asynccontextmanager
    async def scoped(self) -> AsyncIterator[Workspace]:
        """Acquire a workspace and release it on every exit path."""
        workspace = self.acquire()
        try:
            yield workspace
        finally:
            self.release(workspace)

    def active(self) -> list[Path]:
        if not self.root.is_dir():
            return []
        return sorted(p for p in self.root.glob(f"{self.prefix}*") if p.is_dir())

    def sweep_stale(self) -> int:
        """Remove workspaces left behind by a previous process.

        Only call before any execution has started.
        """
        removed = 0
        for path in self.active():
            try:
                shutil.rmtree(path)
                removed += 1
            except OSError as e:
                logger.warning("Failed to sweep stale workspace %s: %s", path, e)
        if removed:
            logger.info("Swept %d stale workspace(s) from %s", removed, self.root)
        return removed
