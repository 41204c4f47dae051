"""Request and result models for the execution sandbox."""

from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TRUNCATION_MARKER = "\n... [Output Truncated]"

_OMIT_WHEN_NONE = frozenset({"errorKind", "error", "info", "executedBy"})


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    COMPILE_FAILURE = "compile_failure"
    RUNTIME_FAILURE = "runtime_failure"
    TIMEOUT = "timeout"
    SPAWN_FAILURE = "spawn_failure"


class ExecutionRequest(BaseModel):
    """A single-use request to run source code."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    language: str = Field(default="", description="Language id, case-insensitive.")
    code: str = Field(
        default="",
        validation_alias=AliasChoices("code", "sourceCode", "source_code"),
        description="Source text.",
    )
    stdin: str | None = Field(default=None, description="Fed to the program, then closed.")


class ExecutionResult(BaseModel):
    """Outcome of one execution. Serialized with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    execution_time_seconds: float = 0.0
    stdout_truncated: bool = False
    stderr_truncated: bool = False
    error_kind: ErrorKind | None = None
    error: str | None = None
    info: str | None = None
    executed_by: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def timed_out(self) -> bool:
        return self.error_kind is ErrorKind.TIMEOUT

    @classmethod
    def rejected(cls, kind: ErrorKind, error: str) -> ExecutionResult:
        return cls(error_kind=kind, error=error)

    def with_attribution(self, executed_by: str | None) -> ExecutionResult:
        return self.model_copy(update={"executed_by": executed_by})

    def to_wire(self) -> dict:
        """JSON-ready dict as sent to clients; exitCode stays even when null."""
        data = self.model_dump(mode="json", by_alias=True)
        return {k: v for k, v in data.items() if v is not None or k not in _OMIT_WHEN_NONE}
