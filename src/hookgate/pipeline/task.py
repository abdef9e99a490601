"""Invocation backends for hooks.

The scheduler only depends on the Task protocol. A hook's command string is
resolved to a concrete Task by ``resolve_task``:

    py:package.module:function  -> CallableTask (in-process)
    anything else               -> SubprocessTask (shell command)

Exit-code contract: 0 = success, 2 = policy violation, anything else = error.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import subprocess
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from hookgate.pipeline.errors import ExecutionError, HookError, SpawnError
from hookgate.process import kill_process_tree

if TYPE_CHECKING:
    from hookgate.pipeline.context import HookContext
    from hookgate.pipeline.hook import HookDescriptor

logger = logging.getLogger(__name__)

CALLABLE_PREFIX = "py:"


@dataclass(frozen=True)
class Outcome:
    """Terminal exit state of one invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""


@runtime_checkable
class Task(Protocol):
    """Something that can run a hook against a payload.

    ``execute`` is cancelled by the executor when the deadline passes and
    must release any external resources when that happens.
    ``execute_blocking`` is the sequential fallback path, run in a worker
    thread; it should enforce ``timeout`` itself where it can and raise
    TimeoutError when it does.
    """

    async def execute(self, context: HookContext, timeout: float) -> Outcome: ...

    def execute_blocking(self, context: HookContext, timeout: float) -> Outcome: ...


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").strip()


class SubprocessTask:
    """Runs a hook command through the system shell.

    The payload is written to stdin as JSON. Each invocation gets its own
    session so the whole process tree can be killed on timeout.
    """

    def __init__(self, command: str, cwd: Path | None = None, env: dict[str, str] | None = None) -> None:
        self.command = command
        self.cwd = cwd
        self.env = env

    def __repr__(self) -> str:
        return f"SubprocessTask({self.command!r})"

    async def execute(self, context: HookContext, timeout: float) -> Outcome:
        """Spawn the command and wait for it to exit.

        Args:
            context: Shared payload
            timeout: Deadline in seconds (enforced by the caller via cancellation)

        Returns:
            Outcome with exit code and captured output

        Raises:
            SpawnError: If the shell could not be started
        """
        try:
            proc = await asyncio.create_subprocess_shell(
                self.command,
                stdin=asyncio.subprocess.PIPE if context.has_payload else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.cwd,
                env=self.env,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(f"Failed to start '{self.command}': {e}") from e

        try:
            stdout, stderr = await proc.communicate(context.stdin)
        except asyncio.CancelledError:
            kill_process_tree(proc.pid)
            with suppress(ProcessLookupError):
                await proc.wait()
            raise

        returncode = await proc.wait()
        return Outcome(exit_code=returncode, stdout=_decode(stdout), stderr=_decode(stderr))

    def execute_blocking(self, context: HookContext, timeout: float) -> Outcome:
        """Run the command synchronously (sequential fallback).

        Raises:
            SpawnError: If the shell could not be started
            TimeoutError: If the command outlived its deadline
        """
        try:
            # S602: hook commands are operator configuration, run as written
            proc = subprocess.Popen(  # noqa: S602
                self.command,
                shell=True,
                stdin=subprocess.PIPE if context.has_payload else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env=self.env,
                start_new_session=True,
            )
        except OSError as e:
            raise SpawnError(f"Failed to start '{self.command}': {e}") from e

        try:
            stdout, stderr = proc.communicate(context.stdin, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            kill_process_tree(proc.pid)
            proc.communicate()
            raise TimeoutError(f"'{self.command}' exceeded {timeout}s") from e

        return Outcome(exit_code=proc.returncode, stdout=_decode(stdout), stderr=_decode(stderr))


HookCallable = Callable[[Any], Any]


class CallableTask:
    """Runs a Python callable in-process.

    The callable receives a private copy of the payload and returns an int
    exit code, None (success) or an Outcome. Raising a HookError subclass
    (e.g. PolicyViolation) is passed through unchanged; any other exception
    is reported as an execution error.

    Synchronous callables run in a worker thread. A sync callable that
    outlives its deadline is abandoned, not interrupted: its result is
    reported as a timeout but the thread keeps running, and an event loop
    shut down by asyncio.run() waits for it before returning.
    """

    def __init__(self, func: HookCallable, name: str | None = None) -> None:
        self.func = func
        self.name = name or getattr(func, "__qualname__", repr(func))

    def __repr__(self) -> str:
        return f"CallableTask({self.name!r})"

    @classmethod
    def from_import_path(cls, path: str) -> CallableTask:
        """Load a callable from ``module:function`` or ``module.function``.

        Raises:
            SpawnError: If the module or attribute cannot be loaded
        """
        if ":" in path:
            module_path, func_name = path.split(":", 1)
        else:
            module_path, _, func_name = path.rpartition(".")

        if not module_path or not func_name:
            raise SpawnError(f"Invalid callable path '{path}'")

        try:
            module = importlib.import_module(module_path)
            func = getattr(module, func_name)
        except Exception as e:
            raise SpawnError(f"Failed to load hook callable '{path}': {e}") from e

        if not callable(func):
            raise SpawnError(f"Hook target '{path}' is not callable")
        return cls(func, name=path)

    async def execute(self, context: HookContext, timeout: float) -> Outcome:
        payload = context.snapshot()
        try:
            if inspect.iscoroutinefunction(self.func):
                value = await self.func(payload)
            else:
                value = await asyncio.to_thread(self.func, payload)
        except (HookError, asyncio.CancelledError):
            raise
        except Exception as e:
            raise ExecutionError(f"{type(e).__name__}: {e}") from e
        return self._to_outcome(value)

    def execute_blocking(self, context: HookContext, timeout: float) -> Outcome:
        payload = context.snapshot()
        try:
            if inspect.iscoroutinefunction(self.func):
                value = asyncio.run(self.func(payload))
            else:
                value = self.func(payload)
        except HookError:
            raise
        except Exception as e:
            raise ExecutionError(f"{type(e).__name__}: {e}") from e
        return self._to_outcome(value)

    def _to_outcome(self, value: Any) -> Outcome:
        if value is None:
            return Outcome(exit_code=0)
        if isinstance(value, Outcome):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return Outcome(exit_code=value)
        raise ExecutionError(f"Hook callable {self.name} returned unsupported value {value!r}")


def resolve_task(hook: HookDescriptor, cwd: Path | None = None) -> Task:
    """Map a hook's command string to a Task.

    Args:
        hook: Hook with a non-empty command
        cwd: Working directory for shell commands

    Returns:
        CallableTask for ``py:`` commands, SubprocessTask otherwise

    Raises:
        SpawnError: If a ``py:`` target cannot be loaded
    """
    command = hook.command or ""
    if command.startswith(CALLABLE_PREFIX):
        return CallableTask.from_import_path(command[len(CALLABLE_PREFIX) :].strip())
    return SubprocessTask(command, cwd=cwd)
