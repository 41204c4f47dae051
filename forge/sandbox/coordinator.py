"""Public entry point of the execution sandbox.

``ExecutionCoordinator.execute`` never raises for a bad request, a broken
toolchain or a misbehaving program: every outcome comes back as an
``ExecutionResult``. Only task cancellation propagates, after the child
process group is killed and the workspace removed.
"""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Mapping

from forge.config import SandboxSettings
from forge.sandbox.errors import SpawnError, UnsupportedLanguageError
from forge.sandbox.languages import Language, LanguageProfile, build_registry, resolve
from forge.sandbox.models import ErrorKind, ExecutionRequest, ExecutionResult
from forge.sandbox.runner import ProcessRunner
from forge.sandbox.workspace import WorkspaceManager

logger = logging.getLogger(__name__)


def _code_hash(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8", errors="replace")).hexdigest()[:16]


def _is_utf8(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class ExecutionCoordinator:
    """Validates, resolves, and runs requests; safe to call concurrently.

    Holds only read-only collaborators, so unrelated calls share nothing
    but the language table.
    """

    def __init__(
        self,
        registry: Mapping[Language, LanguageProfile],
        workspaces: WorkspaceManager,
        runner: ProcessRunner,
    ) -> None:
        self.registry = registry
        self.workspaces = workspaces
        self.runner = runner

    async def execute(self, request: ExecutionRequest, caller: str | None = None) -> ExecutionResult:
        start = time.monotonic()
        result = await self._execute(request)
        self._log_execution(request, result, caller, time.monotonic() - start)
        if caller is not None:
            result = result.with_attribution(caller)
        return result

    async def _execute(self, request: ExecutionRequest) -> ExecutionResult:
        if not request.code or not request.code.strip():
            return ExecutionResult.rejected(ErrorKind.INVALID_INPUT, "Empty code")
        # lone surrogates survive JSON decoding but cannot be written out
        if not _is_utf8(request.code):
            return ExecutionResult.rejected(ErrorKind.INVALID_INPUT, "Code is not valid UTF-8")
        if request.stdin is not None and not _is_utf8(request.stdin):
            return ExecutionResult.rejected(ErrorKind.INVALID_INPUT, "Stdin is not valid UTF-8")

        try:
            profile = resolve(request.language, self.registry)
        except UnsupportedLanguageError as e:
            return ExecutionResult.rejected(ErrorKind.UNSUPPORTED_LANGUAGE, f"Language {e.language} not supported")

        if not profile.executable:
            return ExecutionResult(stdout=profile.browser_only_message(), info="browser_only")

        try:
            async with self.workspaces.scoped() as workspace:
                return await self.runner.run(workspace, profile, request.code, request.stdin)
        except SpawnError as e:
            logger.error("spawn failed language=%s command=%s: %s", profile.language.value, e.command, e.reason)
            return ExecutionResult.rejected(
                ErrorKind.SPAWN_FAILURE,
                f"Failed to start process: {e.command}: {e.reason}",
            )
        except Exception as e:
            logger.exception("Sandbox execution failed language=%s", profile.language.value)
            return ExecutionResult.rejected(ErrorKind.SPAWN_FAILURE, f"Execution failed: {e}")

    @staticmethod
    def _log_execution(
        request: ExecutionRequest,
        result: ExecutionResult,
        caller: str | None,
        duration: float,
    ) -> None:
        logger.info(
            "Sandbox execution: language=%s caller=%s outcome=%s exit_code=%s duration=%dms code_hash=%s",
            request.language,
            caller or "-",
            "ok" if result.ok else result.error_kind.value,
            result.exit_code,
            int(duration * 1000),
            _code_hash(request.code),
        )


def build_coordinator(settings: SandboxSettings) -> ExecutionCoordinator:
    """Wire a coordinator from configuration."""
    return ExecutionCoordinator(
        registry=build_registry(settings.python_command or None),
        workspaces=WorkspaceManager(settings.resolved_workspace_root, settings.workspace_prefix),
        runner=ProcessRunner(timeout=settings.timeout_sec, max_output=settings.max_output_chars),
    )
