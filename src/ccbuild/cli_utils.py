"""
CLI utility functions for ccbuild.

This module provides helpers shared by the ccbuild commands:
- Error formatting and exit handling
- Parsing of -D NAME[=VALUE] arguments
"""

import sys
from typing import Optional, Tuple

from .errors import BuildError, ToolInvocationFailedError


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Compiler not found", "Compile failed")
            message: Error message details
        """
        print(file=sys.stderr)
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}", file=sys.stderr)
        print(file=sys.stderr)
        print(message, file=sys.stderr)
        print(file=sys.stderr)

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print(file=sys.stderr)
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}", file=sys.stderr)

    @staticmethod
    def handle_build_error(error: BuildError) -> None:
        """Print a BuildError and exit with status 1.

        Compiler diagnostics of a failed invocation are printed verbatim.
        """
        ErrorFormatter.print_error(f"Error: {error.kind.value}", error.message)
        if isinstance(error, ToolInvocationFailedError) and error.command:
            print(f"Command: {' '.join(error.command)}", file=sys.stderr)
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Build interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:", file=sys.stderr)
            print(traceback.format_exc(), file=sys.stderr)

        sys.exit(1)


def parse_define(text: str) -> Tuple[str, Optional[str]]:
    """Split a "NAME" or "NAME=VALUE" define argument.

    Examples:
        >>> parse_define("FOO")
        ('FOO', None)
        >>> parse_define("FOO=1")
        ('FOO', '1')
    """
    name, sep, value = text.partition("=")
    return (name, value) if sep else (name, None)
