"""Compile and run untrusted source inside a workspace.

Each child is started in its own session so the whole process group can be
killed with SIGKILL: on timeout, on output overflow, on cancellation, and
when the program exits while something it started still holds its output
pipes open.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import time

from forge.sandbox.errors import SpawnError
from forge.sandbox.languages import LanguageProfile
from forge.sandbox.models import TRUNCATION_MARKER, ErrorKind, ExecutionResult
from forge.sandbox.workspace import Workspace

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096
_DRAIN_TIMEOUT = 2.0
_EXIT_POLL_INTERVAL = 0.05
_PIPE_GRACE = 0.2
_INHERITED_ENV = ("PATH", "LANG", "LC_ALL", "JAVA_HOME", "SYSTEMROOT", "COMSPEC", "PATHEXT")


class _StreamCapture:
    """Accumulates decoded output up to ``limit`` characters."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.truncated = False
        self._parts: list[str] = []
        self._size = 0
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes) -> bool:
        """Append a chunk; returns True once the cap has been exceeded."""
        if self.truncated:
            return True
        text = self._decoder.decode(data)
        self._parts.append(text)
        self._size += len(text)
        if self._size > self.limit:
            head = "".join(self._parts)[: self.limit]
            self._parts = [head, TRUNCATION_MARKER]
            self.truncated = True
        return self.truncated

    def finish(self) -> None:
        if not self.truncated:
            self._parts.append(self._decoder.decode(b"", final=True))

    @property
    def text(self) -> str:
        return "".join(self._parts)


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        elif proc.returncode is None:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


def _normalize_exit_code(returncode: int | None) -> int:
    # negative means killed by a signal
    if returncode is None or returncode < 0:
        return 1
    return returncode


def _child_env(workspace: Workspace, profile: LanguageProfile) -> dict[str, str]:
    env = {key: os.environ[key] for key in _INHERITED_ENV if key in os.environ}
    env.update(HOME=str(workspace.root), TMPDIR=str(workspace.root))
    env.update(profile.env)
    return env


class ProcessRunner:
    """Runs one profile's compile and run steps under time and output limits."""

    def __init__(self, timeout: float = 30.0, max_output: int = 50000) -> None:
        self.timeout = timeout
        self.max_output = max_output

    async def run(
        self,
        workspace: Workspace,
        profile: LanguageProfile,
        code: str,
        stdin: str | None = None,
    ) -> ExecutionResult:
        # raises UnicodeEncodeError before anything is spawned
        stdin_data = stdin.encode("utf-8") if stdin else None
        workspace.path(profile.source_filename).write_text(code, encoding="utf-8", newline="")
        env = _child_env(workspace, profile)

        if profile.requires_compilation:
            failure = await self._compile(workspace, profile, env)
            if failure is not None:
                return failure

        command = profile.run_command(workspace.root)
        stdout = _StreamCapture(self.max_output)
        stderr = _StreamCapture(self.max_output)

        start = time.monotonic()
        proc = await self._spawn(
            command,
            workspace,
            env,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        logger.debug("run started language=%s pid=%s", profile.language.value, proc.pid)
        timed_out = await self._supervise(
            proc, [(proc.stdout, stdout), (proc.stderr, stderr)], stdin_data=stdin_data
        )
        elapsed = time.monotonic() - start

        if timed_out:
            logger.warning("run timed out language=%s pid=%s after %.2fs", profile.language.value, proc.pid, elapsed)
            return ExecutionResult(
                stdout=stdout.text,
                stderr=stderr.text,
                exit_code=None,
                execution_time_seconds=elapsed,
                stdout_truncated=stdout.truncated,
                stderr_truncated=stderr.truncated,
                error_kind=ErrorKind.TIMEOUT,
                error=f"Execution timed out after {self.timeout:g}s",
            )

        exit_code = _normalize_exit_code(proc.returncode)
        return ExecutionResult(
            stdout=stdout.text,
            stderr=stderr.text,
            exit_code=exit_code,
            execution_time_seconds=elapsed,
            stdout_truncated=stdout.truncated,
            stderr_truncated=stderr.truncated,
            error_kind=ErrorKind.RUNTIME_FAILURE if exit_code != 0 else None,
        )

    async def _compile(
        self,
        workspace: Workspace,
        profile: LanguageProfile,
        env: dict[str, str],
    ) -> ExecutionResult | None:
        """Run the compiler; returns a result only when compilation failed."""
        errors = _StreamCapture(self.max_output)
        proc = await self._spawn(
            profile.compile_command(),
            workspace,
            env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        timed_out = await self._supervise(proc, [(proc.stderr, errors)])

        if timed_out:
            return ExecutionResult(
                stderr=errors.text,
                exit_code=None,
                stderr_truncated=errors.truncated,
                error_kind=ErrorKind.TIMEOUT,
                error=f"Compilation timed out after {self.timeout:g}s",
            )
        if proc.returncode != 0:
            logger.debug("compile failed language=%s rc=%s", profile.language.value, proc.returncode)
            return ExecutionResult(
                stderr=errors.text,
                exit_code=_normalize_exit_code(proc.returncode),
                execution_time_seconds=0.0,
                stderr_truncated=errors.truncated,
                error_kind=ErrorKind.COMPILE_FAILURE,
            )
        return None

    @staticmethod
    async def _spawn(
        command: list[str],
        workspace: Workspace,
        env: dict[str, str],
        **kwargs,
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=workspace.root,
                env=env,
                start_new_session=os.name == "posix",
                **kwargs,
            )
        except OSError as e:
            raise SpawnError(command[0], e.strerror or str(e)) from e

    async def _supervise(
        self,
        proc: asyncio.subprocess.Process,
        captures: list[tuple[asyncio.StreamReader, _StreamCapture]],
        stdin_data: bytes | None = None,
    ) -> bool:
        """Wait for exit or the deadline, whichever comes first.

        Returns True if the deadline won. The child is reaped when this
        returns, including when it is cancelled.

        The group is only signalled while some member is known to be alive:
        the child itself, or a descendant still holding the output pipes.
        Once the group is empty its id may be handed to an unrelated process.
        """
        tasks = [asyncio.create_task(self._pump(stream, capture, proc)) for stream, capture in captures]
        if proc.stdin is not None:
            tasks.append(asyncio.create_task(self._feed_stdin(proc.stdin, stdin_data)))
        # resolves only after the child exited and every pipe closed
        closed = asyncio.ensure_future(proc.wait())

        timed_out = False
        try:
            if not await self._wait_exit(proc, closed, self.timeout):
                timed_out = True
                _kill_group(proc)
            else:
                done, _ = await asyncio.wait({closed}, timeout=_PIPE_GRACE)
                if not done:
                    logger.debug("pid=%s exited, descendants hold its pipes; killing group", proc.pid)
                    _kill_group(proc)
            await asyncio.wait({closed, *tasks}, timeout=_DRAIN_TIMEOUT)
            if not closed.done():
                logger.warning("output pipes of pid=%s still open after kill", proc.pid)
        finally:
            if proc.returncode is None:
                _kill_group(proc)
                await self._wait_exit(proc, closed, _DRAIN_TIMEOUT)
            for task in (*tasks, closed):
                if not task.done():
                    task.cancel()
        return timed_out

    @staticmethod
    async def _wait_exit(proc: asyncio.subprocess.Process, closed: asyncio.Future, timeout: float) -> bool:
        """True once the child has exited, False if ``timeout`` passed first.

        ``returncode`` is set as soon as the child is reaped, while
        ``closed`` also waits for the pipes, so both are watched.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while proc.returncode is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.wait({closed}, timeout=min(_EXIT_POLL_INTERVAL, remaining))
        return True

    @staticmethod
    async def _pump(
        stream: asyncio.StreamReader,
        capture: _StreamCapture,
        proc: asyncio.subprocess.Process,
    ) -> None:
        # keep reading after overflow so the pipe reaches EOF
        killed = False
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            if capture.feed(chunk) and not killed:
                logger.info("output cap of %d chars exceeded, killing pid=%s", capture.limit, proc.pid)
                _kill_group(proc)
                killed = True
        capture.finish()

    @staticmethod
    async def _feed_stdin(writer: asyncio.StreamWriter, data: bytes | None) -> None:
        try:
            if data:
                writer.write(data)
                await writer.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("child exited before reading all of stdin")
        finally:
            writer.close()
