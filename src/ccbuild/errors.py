"""Error types for ccbuild.

Every failure surfaced to a caller is a ``BuildError`` carrying an
``ErrorKind`` and a human-readable message. One subclass exists per kind so
callers can catch a specific failure without inspecting ``kind``.
"""

import _thread
import threading
from enum import Enum
from typing import List, Optional


class ErrorKind(Enum):
    """Classification of a build failure."""

    TOOL_NOT_FOUND = "ToolNotFound"
    TOOL_INVOCATION_FAILED = "ToolInvocationFailed"
    IO_FAILURE = "IoFailure"
    UNSUPPORTED_TARGET_HOST = "UnsupportedTargetHost"
    PROBE_COMPILE_FAILED = "ProbeCompileFailed"


class BuildError(Exception):
    """Base exception for all ccbuild failures.

    Attributes:
        kind: Failure classification
        message: Human-readable description
    """

    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class ToolNotFoundError(BuildError):
    """No usable compiler, archiver or toolchain could be located."""

    kind = ErrorKind.TOOL_NOT_FOUND


class ToolInvocationFailedError(BuildError):
    """A tool ran but exited with a non-zero status.

    Attributes:
        returncode: Exit status of the process
        command: Argument list that was executed
        stdout: Captured standard output
        stderr: Captured standard error
    """

    kind = ErrorKind.TOOL_INVOCATION_FAILED

    def __init__(
        self,
        message: str,
        returncode: int,
        command: Optional[List[str]] = None,
        stdout: str = "",
        stderr: str = ""
    ):
        super().__init__(message)
        self.returncode = returncode
        self.command = command or []
        self.stdout = stdout
        self.stderr = stderr


class IoFailureError(BuildError):
    """A process could not be spawned or filesystem I/O failed."""

    kind = ErrorKind.IO_FAILURE


class UnsupportedTargetHostError(BuildError):
    """The target/host combination maps to no known toolchain family."""

    kind = ErrorKind.UNSUPPORTED_TARGET_HOST


class ProbeCompileFailedError(BuildError):
    """The flag probe could not be prepared (distinct from a rejected flag)."""

    kind = ErrorKind.PROBE_COMPILE_FAILED


def handle_keyboard_interrupt_properly(ke: KeyboardInterrupt) -> None:
    """Forward a KeyboardInterrupt caught in a worker to the main thread.

    Compilation runs in worker threads, where a caught KeyboardInterrupt
    would otherwise only end that worker.

    Args:
        ke: The interrupt that was caught

    Raises:
        KeyboardInterrupt: Always
    """
    if threading.current_thread() is not threading.main_thread():
        _thread.interrupt_main()
    raise ke
