"""Internal error types for the execution sandbox.

None of these escape ``ExecutionCoordinator.execute``; they are turned into
``ExecutionResult`` data at that boundary.
"""


class SandboxError(Exception):
    """Base error for sandbox failures."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Sandbox error" + (f": {detail}" if detail else ""))


class UnsupportedLanguageError(SandboxError):
    """The language id is not in the registry."""

    def __init__(self, language: str) -> None:
        self.language = language
        super().__init__(f"Language {language} not supported")


class SpawnError(SandboxError):
    """The OS could not start the compiler or interpreter."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start process: {command}: {reason}")
