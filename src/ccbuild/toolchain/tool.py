"""Resolved compiler descriptor.

A ``Tool`` is everything needed to invoke the compiler for one terminal
action: executable, family, base arguments and environment overlay.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


class ToolFamily(Enum):
    """Command-line dialect of a compiler."""

    GNU = "gnu"
    CLANG = "clang"
    MSVC = "msvc"

    def include_flag(self, path: Path) -> str:
        if self is ToolFamily.MSVC:
            return f"/I{path}"
        return f"-I{path}"

    def define_flag(self, name: str, value: Optional[str]) -> str:
        prefix = "/D" if self is ToolFamily.MSVC else "-D"
        if value is None:
            return f"{prefix}{name}"
        return f"{prefix}{name}={value}"


@dataclass
class Tool:
    """Configuration used to invoke a C compiler.

    Attributes:
        path: Resolved compiler executable
        family: Command-line dialect
        args: Base arguments (flags shared by every source file)
        env: Environment variables to set for the compiler
        wrapper_path: Compiler launcher (ccache, sccache, ...) run in front of path
        wrapper_args: Extra words from a CC-style variable, passed right after path
        cuda: Whether this is a CUDA compiler (nvcc)
        include_paths: System include directories injected by toolchain discovery
        lib_paths: System library directories injected by toolchain discovery
    """

    path: Path
    family: ToolFamily
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    wrapper_path: Optional[Path] = None
    wrapper_args: List[str] = field(default_factory=list)
    cuda: bool = False
    include_paths: List[Path] = field(default_factory=list)
    lib_paths: List[Path] = field(default_factory=list)

    def to_command(self) -> List[str]:
        """Return the argument list that invokes this compiler with its base args."""
        cmd = []
        if self.wrapper_path is not None:
            cmd.append(str(self.wrapper_path))
        cmd.append(str(self.path))
        cmd.extend(self.wrapper_args)
        cmd.extend(self.args)
        return cmd

    def push_cc_arg(self, flag: str) -> None:
        """Append a flag meant for the host C compiler.

        nvcc only understands its own options, so host compiler flags are
        forwarded through -Xcompiler.
        """
        if self.cuda:
            self.args.append("-Xcompiler")
        self.args.append(flag)

    def compile_args(self, object_path: Path, source: Path) -> List[str]:
        """Per-file arguments that compile ``source`` into ``object_path``."""
        if self.family is ToolFamily.MSVC:
            return [f"/Fo{object_path}", "/c", str(source)]
        return ["-o", str(object_path), "-c", str(source)]

    def preprocess_args(self, source: Path) -> List[str]:
        """Per-file arguments that run only the preprocessor on ``source``."""
        if self.family is ToolFamily.MSVC:
            return ["/E", str(source)]
        return ["-E", str(source)]

    def is_like_gnu(self) -> bool:
        return self.family is ToolFamily.GNU

    def is_like_clang(self) -> bool:
        return self.family is ToolFamily.CLANG

    def is_like_msvc(self) -> bool:
        return self.family is ToolFamily.MSVC

    def cc_env(self) -> str:
        """Return the compiler in CC environment variable format.

        Empty unless a compiler launcher is in use, e.g. "ccache /usr/bin/cc -m32".
        """
        if self.wrapper_path is None:
            return ""
        words = [str(self.wrapper_path), str(self.path)] + list(self.wrapper_args)
        return " ".join(words)

    def cflags_env(self) -> str:
        """Return the base arguments in CFLAGS environment variable format."""
        return " ".join(shlex.quote(arg) for arg in self.args)

    def __str__(self) -> str:
        return f"{self.path} ({self.family.value}): {' '.join(self.to_command())}"


@dataclass
class Archiver:
    """Resolved archiver descriptor.

    Attributes:
        path: Archiver executable (ar, lib.exe, emar, ...)
        msvc: Whether lib.exe command-line syntax is used
        args: Extra arguments from an AR-style variable
        env: Environment variables to set for the archiver
    """

    path: Path
    msvc: bool = False
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)

    def library_filename(self, name: str) -> str:
        """Static library file name for ``name`` ("foo" -> "libfoo.a" / "foo.lib")."""
        if name.startswith("lib") and name.endswith(".a"):
            name = name[3:-2]
        elif name.endswith(".lib"):
            name = name[:-4]
        return f"{name}.lib" if self.msvc else f"lib{name}.a"

    def to_command(self, archive_path: Path, objects: List[Path]) -> List[str]:
        """Argument list that packs ``objects`` into ``archive_path``."""
        cmd = [str(self.path)] + list(self.args)
        if self.msvc:
            cmd.extend(["/nologo", f"/OUT:{archive_path}"])
        else:
            # c=create, r=insert, s=write symbol index
            cmd.extend(["crs", str(archive_path)])
        cmd.extend(str(obj) for obj in objects)
        return cmd
