"""Execution sandbox: run untrusted source under time and output limits."""

from forge.sandbox.coordinator import ExecutionCoordinator, build_coordinator
from forge.sandbox.errors import SandboxError, SpawnError, UnsupportedLanguageError
from forge.sandbox.languages import (
    DEFAULT_REGISTRY,
    InvocationMode,
    Language,
    LanguageProfile,
    build_registry,
    resolve,
)
from forge.sandbox.models import TRUNCATION_MARKER, ErrorKind, ExecutionRequest, ExecutionResult
from forge.sandbox.runner import ProcessRunner
from forge.sandbox.workspace import Workspace, WorkspaceManager

__all__ = [
    "DEFAULT_REGISTRY",
    "ErrorKind",
    "ExecutionCoordinator",
    "ExecutionRequest",
    "ExecutionResult",
    "InvocationMode",
    "Language",
    "LanguageProfile",
    "ProcessRunner",
    "SandboxError",
    "SpawnError",
    "TRUNCATION_MARKER",
    "UnsupportedLanguageError",
    "Workspace",
    "WorkspaceManager",
    "build_coordinator",
    "build_registry",
    "resolve",
]
