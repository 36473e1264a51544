"""Target triple handling.

This module maps target triples (``<arch>-<vendor>-<os>[-<env>]``) onto the
toolchain kind that builds for them, and from there onto default compiler and
archiver names.

Design:
    - Table-driven: OS/ABI markers map to a ToolchainKind
    - Cross-compiler prefixes are looked up per target triple
    - Host triple detection for when neither the caller nor HOST supplies one
"""

import platform
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class ToolchainKind(Enum):
    """Toolchain implied by a target's OS/ABI."""

    MSVC = "msvc"
    MINGW = "mingw"
    APPLE = "apple"
    ANDROID = "android"
    EMSCRIPTEN = "emscripten"
    WASM = "wasm"
    UNIX = "unix"
    BARE_METAL = "bare-metal"


# Ordered: the first marker found in the triple wins.
TOOLCHAIN_MARKERS: List[Tuple[str, ToolchainKind]] = [
    ("-msvc", ToolchainKind.MSVC),
    ("-windows-gnu", ToolchainKind.MINGW),
    ("-android", ToolchainKind.ANDROID),
    ("-emscripten", ToolchainKind.EMSCRIPTEN),
    ("-wasi", ToolchainKind.WASM),
    ("wasm32-unknown-unknown", ToolchainKind.WASM),
    ("-apple-", ToolchainKind.APPLE),
    ("-linux", ToolchainKind.UNIX),
    ("-freebsd", ToolchainKind.UNIX),
    ("-netbsd", ToolchainKind.UNIX),
    ("-openbsd", ToolchainKind.UNIX),
    ("-dragonfly", ToolchainKind.UNIX),
    ("-bitrig", ToolchainKind.UNIX),
    ("-solaris", ToolchainKind.UNIX),
    ("-illumos", ToolchainKind.UNIX),
    ("-haiku", ToolchainKind.UNIX),
    ("-redox", ToolchainKind.UNIX),
    ("-fuchsia", ToolchainKind.UNIX),
    ("-none", ToolchainKind.BARE_METAL),
    ("-elf", ToolchainKind.BARE_METAL),
]

# Default (C compiler, C++ compiler, archiver) per toolchain kind when no
# cross prefix applies.
DEFAULT_TOOLS: Dict[ToolchainKind, Tuple[str, str, str]] = {
    ToolchainKind.MSVC: ("cl.exe", "cl.exe", "lib.exe"),
    ToolchainKind.MINGW: ("gcc", "g++", "ar"),
    ToolchainKind.APPLE: ("clang", "clang++", "ar"),
    ToolchainKind.ANDROID: ("clang", "clang++", "ar"),
    ToolchainKind.EMSCRIPTEN: ("emcc", "em++", "emar"),
    ToolchainKind.WASM: ("clang", "clang++", "llvm-ar"),
    ToolchainKind.UNIX: ("cc", "c++", "ar"),
    ToolchainKind.BARE_METAL: ("gcc", "g++", "ar"),
}

# GNU cross toolchain prefixes (e.g. "aarch64-linux-gnu-gcc").
CROSS_PREFIXES: Dict[str, str] = {
    "aarch64-unknown-linux-gnu": "aarch64-linux-gnu",
    "aarch64-unknown-linux-musl": "aarch64-linux-musl",
    "aarch64-linux-android": "aarch64-linux-android",
    "arm-linux-androideabi": "arm-linux-androideabi",
    "armv7-linux-androideabi": "armv7a-linux-androideabi",
    "i686-linux-android": "i686-linux-android",
    "x86_64-linux-android": "x86_64-linux-android",
    "arm-unknown-linux-gnueabi": "arm-linux-gnueabi",
    "arm-unknown-linux-gnueabihf": "arm-linux-gnueabihf",
    "arm-unknown-linux-musleabi": "arm-linux-musleabi",
    "arm-unknown-linux-musleabihf": "arm-linux-musleabihf",
    "armv7-unknown-linux-gnueabihf": "arm-linux-gnueabihf",
    "armv7-unknown-linux-musleabihf": "arm-linux-musleabihf",
    "i586-unknown-linux-gnu": "i686-linux-gnu",
    "i686-unknown-linux-gnu": "i686-linux-gnu",
    "i686-unknown-linux-musl": "musl",
    "i686-pc-windows-gnu": "i686-w64-mingw32",
    "x86_64-pc-windows-gnu": "x86_64-w64-mingw32",
    "mips-unknown-linux-gnu": "mips-linux-gnu",
    "mipsel-unknown-linux-gnu": "mipsel-linux-gnu",
    "mips64-unknown-linux-gnuabi64": "mips64-linux-gnuabi64",
    "mips64el-unknown-linux-gnuabi64": "mips64el-linux-gnuabi64",
    "powerpc-unknown-linux-gnu": "powerpc-linux-gnu",
    "powerpc64-unknown-linux-gnu": "powerpc-linux-gnu",
    "powerpc64le-unknown-linux-gnu": "powerpc64le-linux-gnu",
    "riscv64gc-unknown-linux-gnu": "riscv64-linux-gnu",
    "s390x-unknown-linux-gnu": "s390x-linux-gnu",
    "sparc64-unknown-linux-gnu": "sparc64-linux-gnu",
    "x86_64-unknown-linux-musl": "musl",
    "x86_64-unknown-netbsd": "x86_64--netbsd",
    "thumbv6m-none-eabi": "arm-none-eabi",
    "thumbv7em-none-eabi": "arm-none-eabi",
    "thumbv7em-none-eabihf": "arm-none-eabi",
    "thumbv7m-none-eabi": "arm-none-eabi",
    "thumbv8m.main-none-eabi": "arm-none-eabi",
    "armv7r-none-eabi": "arm-none-eabi",
    "armv7r-none-eabihf": "arm-none-eabi",
    "riscv32i-unknown-none-elf": "riscv32-unknown-elf",
    "riscv32imac-unknown-none-elf": "riscv32-unknown-elf",
    "riscv32imc-unknown-none-elf": "riscv32-unknown-elf",
    "riscv64gc-unknown-none-elf": "riscv64-unknown-elf",
    "riscv64imac-unknown-none-elf": "riscv64-unknown-elf",
}


@dataclass(frozen=True)
class TargetTriple:
    """A parsed target triple.

    Attributes:
        triple: The full triple as given
        arch: Architecture component (first word)
        kind: Toolchain kind implied by the OS/ABI, or None if unknown
    """

    triple: str
    arch: str
    kind: Optional[ToolchainKind]

    @classmethod
    def parse(cls, triple: str) -> "TargetTriple":
        """Parse a triple string.

        Unknown triples parse successfully with ``kind`` set to None; the
        caller decides whether that is an error.
        """
        arch = triple.split("-", 1)[0]
        kind = None
        for marker, candidate in TOOLCHAIN_MARKERS:
            if marker in triple:
                kind = candidate
                break
        return cls(triple=triple, arch=arch, kind=kind)

    @property
    def is_known(self) -> bool:
        return self.kind is not None

    @property
    def is_msvc(self) -> bool:
        return self.kind is ToolchainKind.MSVC

    @property
    def is_windows(self) -> bool:
        return "-windows" in self.triple

    @property
    def is_apple(self) -> bool:
        return self.kind is ToolchainKind.APPLE

    @property
    def is_bare_metal(self) -> bool:
        return self.kind is ToolchainKind.BARE_METAL

    @property
    def is_x86_64(self) -> bool:
        return self.arch == "x86_64"

    @property
    def is_x86_32(self) -> bool:
        return self.arch in ("i386", "i586", "i686")

    @property
    def underscored(self) -> str:
        """Triple with dashes replaced, usable in environment variable names."""
        return self.triple.replace("-", "_")

    def cross_prefix(self) -> Optional[str]:
        """Return the GNU cross toolchain prefix for this target, if known."""
        return CROSS_PREFIXES.get(self.triple)

    def default_tools(self, host: "TargetTriple") -> Tuple[str, str, str]:
        """Return default (C compiler, C++ compiler, archiver) names.

        Args:
            host: Triple of the machine running the build

        Returns:
            Tuple of executable names

        Raises:
            ValueError: If the target maps to no known toolchain
        """
        if self.kind is None:
            raise ValueError(f"No known toolchain for target {self.triple}")

        cc, cxx, ar = DEFAULT_TOOLS[self.kind]
        prefix = self.cross_prefix()

        if self.kind is ToolchainKind.ANDROID and prefix:
            return f"{prefix}-clang", f"{prefix}-clang++", f"{prefix}-ar"

        if self.kind in (ToolchainKind.UNIX, ToolchainKind.MINGW, ToolchainKind.BARE_METAL):
            cross = self.triple != host.triple
            if self.kind is ToolchainKind.MINGW and host.is_windows:
                cross = False
            # Bare-metal toolchains are always prefixed.
            if prefix and (cross or self.kind is ToolchainKind.BARE_METAL):
                return f"{prefix}-gcc", f"{prefix}-g++", f"{prefix}-ar"

        return cc, cxx, ar

    def msvc_arch(self) -> Optional[str]:
        """Return the Visual Studio architecture name for this target."""
        if self.is_x86_64:
            return "x64"
        if self.is_x86_32:
            return "x86"
        if self.arch == "aarch64":
            return "arm64"
        if self.arch.startswith("arm") or self.arch.startswith("thumb"):
            return "arm"
        return None

    def __str__(self) -> str:
        return self.triple


def detect_host_triple() -> str:
    """Detect the triple of the machine running this process.

    Returns:
        Triple such as "x86_64-unknown-linux-gnu" or "aarch64-apple-darwin"
    """
    system = platform.system().lower()
    machine = platform.machine().lower()

    if machine in ("amd64", "x86_64", "x64"):
        arch = "x86_64"
    elif machine in ("arm64", "aarch64"):
        arch = "aarch64"
    elif machine in ("i386", "i486", "i586", "i686", "x86"):
        arch = "i686"
    elif machine.startswith("armv7"):
        arch = "armv7"
    elif machine.startswith("arm"):
        arch = "arm"
    else:
        arch = machine or "x86_64"

    if system == "windows":
        if arch == "x86_64" and sys.maxsize <= 2**32:
            arch = "i686"
        return f"{arch}-pc-windows-msvc"
    elif system == "darwin":
        return f"{arch}-apple-darwin"
    elif system == "linux":
        if arch in ("armv7", "arm"):
            return f"{arch}-unknown-linux-gnueabihf"
        return f"{arch}-unknown-linux-gnu"
    else:
        return f"{arch}-unknown-{system}"
