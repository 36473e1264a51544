"""
ccbuild - Compile C, C++ and CUDA sources into a static library.

Resolves and classifies the compiler, synthesizes family-specific flags,
compiles in parallel and archives the result:

    from ccbuild import Build

    Build().file("foo.c").define("FOO", "1").compile("foo")
"""

from .build import Build
from .config import NO_STDLIB
from .errors import (
    BuildError,
    ErrorKind,
    IoFailureError,
    ProbeCompileFailedError,
    ToolInvocationFailedError,
    ToolNotFoundError,
    UnsupportedTargetHostError,
)
from .toolchain import Archiver, Tool, ToolFamily, find_tool, find_vs_version

__version__ = "0.1.0"

__all__ = [
    'Build',
    'NO_STDLIB',
    'Archiver',
    'Tool',
    'ToolFamily',
    'find_tool',
    'find_vs_version',
    'BuildError',
    'ErrorKind',
    'IoFailureError',
    'ProbeCompileFailedError',
    'ToolInvocationFailedError',
    'ToolNotFoundError',
    'UnsupportedTargetHostError',
]
