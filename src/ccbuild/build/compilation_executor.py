"""Compilation Executor.

This module runs the compiler on one source file at a time.

Design:
    - Wraps subprocess.run for compile and preprocess commands
    - Captures stdout/stderr so failures carry the compiler's diagnostics
    - No timeout; a compile runs until the compiler exits
"""

import subprocess
from pathlib import Path
from typing import Dict, List, Mapping

from ..errors import IoFailureError, ToolInvocationFailedError, handle_keyboard_interrupt_properly
from ..toolchain.tool import Tool


class CompilationExecutor:
    """Executes compiler commands for single source files.

    This class handles:
    - Building the per-file command from a configured Tool
    - Running the compiler subprocess
    - Turning failures into ToolInvocationFailedError with captured output
    """

    def __init__(self, env: Mapping[str, str], verbose: bool = False):
        """Initialize compilation executor.

        Args:
            env: Base environment for the compiler (tool overlays are applied on top)
            verbose: Whether to print each command and compiler warnings
        """
        self.env = env
        self.verbose = verbose

    def _tool_env(self, tool: Tool) -> Dict[str, str]:
        env = dict(self.env)
        env.update(tool.env)
        return env

    def compile_object(self, tool: Tool, source: Path, obj: Path) -> Path:
        """Compile a single source file.

        Args:
            tool: Compiler with its base arguments
            source: Source file
            obj: Output object file

        Returns:
            Path to generated object file

        Raises:
            IoFailureError: If the source is missing or the compiler cannot be spawned
            ToolInvocationFailedError: If the compiler exits with non-zero status
        """
        if not source.exists():
            raise IoFailureError(f"Source file not found: {source}")

        try:
            obj.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IoFailureError(f"Failed to create {obj.parent}: {e}") from e

        cmd = tool.to_command() + tool.compile_args(obj, source)
        if self.verbose:
            print(f"running: {' '.join(cmd)}")

        result = self._run(cmd, tool, text=True)
        if result.returncode != 0:
            raise ToolInvocationFailedError(
                f"Compilation failed for {source} (exit status {result.returncode})\n"
                f"stderr: {result.stderr}\n"
                f"stdout: {result.stdout}",
                returncode=result.returncode,
                command=cmd,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        if self.verbose and result.stderr:
            print(result.stderr)

        return obj

    def preprocess(self, tool: Tool, source: Path) -> bytes:
        """Run only the preprocessor on ``source``.

        Returns:
            Raw preprocessed output

        Raises:
            IoFailureError: If the compiler cannot be spawned
            ToolInvocationFailedError: If the preprocessor exits with non-zero status
        """
        cmd = tool.to_command() + tool.preprocess_args(source)
        if self.verbose:
            print(f"running: {' '.join(cmd)}")

        result = self._run(cmd, tool, text=False)
        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace")
            stdout = result.stdout.decode(errors="replace")
            raise ToolInvocationFailedError(
                f"Preprocessing failed for {source} (exit status {result.returncode})\n"
                f"stderr: {stderr}",
                returncode=result.returncode,
                command=cmd,
                stdout=stdout,
                stderr=stderr,
            )
        return result.stdout

    def _run(self, cmd: List[str], tool: Tool, text: bool) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=text,
                stdin=subprocess.DEVNULL,
                env=self._tool_env(tool),
            )
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except OSError as e:
            raise IoFailureError(f"Failed to run {tool.path}: {e}") from e
