"""
Shared fixtures for ccbuild unit tests.

Provides a stub toolchain: a POSIX shell script installed as cc, c++, ar,
cl.exe and lib.exe that records the arguments of every call it receives.
"""

import stat
import sys
from pathlib import Path
from typing import List

import pytest

from ccbuild import Build

GCC_BANNER = "gcc (GCC) 12.2.0\nCopyright (C) 2022 Free Software Foundation, Inc."
CLANG_BANNER = "clang version 16.0.6\nTarget: x86_64-unknown-linux-gnu"
MSVC_BANNER = "Microsoft (R) C/C++ Optimizing Compiler Version 19.38.33130 for x64"

# Only shell builtins are used: PATH holds nothing but the stub directory.
STUB_SCRIPT = r"""#!/bin/sh
if [ "$1" = "--version" ]; then
    printf '%s\n' "$STUB_VERSION_BANNER"
    exit 0
fi

for arg in "$@"; do
    case "$arg" in
        *flag_check*)
            for a in "$@"; do
                for reject in $STUB_REJECT_FLAGS; do
                    if [ "$a" = "$reject" ]; then
                        exit 1
                    fi
                done
            done
            exit 0
            ;;
    esac
done

i=0
while ! ( set -C; : > "$STUB_CALLS_DIR/out$i" ) 2>/dev/null; do
    i=$((i + 1))
done
for arg in "$@"; do
    printf '%s\n' "$arg"
done > "$STUB_CALLS_DIR/out$i"

if [ -n "$STUB_FAIL_ON" ]; then
    for arg in "$@"; do
        case "$arg" in
            *"$STUB_FAIL_ON")
                printf 'error: cannot compile %s\n' "$arg" >&2
                exit 1
                ;;
        esac
    done
fi

prev=""
archive=""
members=""
for arg in "$@"; do
    if [ -n "$archive" ]; then
        members="$members$arg
"
    fi
    case "$prev" in
        -o) : > "$arg" ;;
        crs) archive="$arg" ;;
        -E|/E) printf 'expanded %s\n' "$arg" ;;
    esac
    case "$arg" in
        /Fo*) : > "${arg#/Fo}" ;;
        /OUT:*) archive="${arg#/OUT:}" ;;
    esac
    prev="$arg"
done
if [ -n "$archive" ]; then
    printf '%s' "$members" > "$archive"
fi
exit 0
"""

STUB_NAMES = ("cc", "c++", "ar", "cl.exe", "lib.exe", "nvcc", "clang", "clang++")

# Variables that would leak from the developer's shell into a test build.
SCRUBBED_VARS = (
    "CC", "CXX", "AR", "CFLAGS", "CXXFLAGS",
    "HOST_CC", "HOST_CXX", "HOST_AR", "HOST_CFLAGS", "HOST_CXXFLAGS",
    "TARGET_CC", "TARGET_CXX", "TARGET_AR", "TARGET_CFLAGS", "TARGET_CXXFLAGS",
    "TARGET", "HOST", "OPT_LEVEL", "DEBUG", "OUT_DIR", "NUM_JOBS",
    "CARGO_CFG_TARGET_FEATURE", "CRATE_CC_NO_DEFAULTS", "CC_ENABLE_DEBUG_OUTPUT",
    "VSINSTALLDIR", "VisualStudioVersion",
)


class StubToolchain:
    """A directory of recording stub tools plus helpers to inspect their calls."""

    def __init__(self, root: Path, banner: str = GCC_BANNER):
        self.root = root
        self.bin_dir = root / "bin"
        self.calls_dir = root / "calls"
        self.out_dir = root / "out"
        self.banner = banner
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        self.calls_dir.mkdir(parents=True, exist_ok=True)

        for name in STUB_NAMES:
            self.install(name)

    def install(self, name: str) -> Path:
        """Install the stub script under ``name`` and return its path."""
        path = self.bin_dir / name
        path.write_text(STUB_SCRIPT)
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    def build(self, target: str = "x86_64-unknown-linux-gnu") -> Build:
        """Return a Build wired to the stubs, compiling serially."""
        build = Build().target(target).host("x86_64-unknown-linux-gnu").out_dir(self.out_dir).jobs(1)
        for name in SCRUBBED_VARS:
            build.set_env(name, "")
        build.set_env("PATH", str(self.bin_dir))
        build.set_env("STUB_VERSION_BANNER", self.banner)
        build.set_env("STUB_CALLS_DIR", str(self.calls_dir))
        build.set_env("STUB_REJECT_FLAGS", "")
        build.set_env("STUB_FAIL_ON", "")
        return build

    def calls(self) -> List[List[str]]:
        """Recorded argument lists, in call order."""
        files = sorted(self.calls_dir.glob("out*"), key=lambda p: int(p.name[3:]))
        return [p.read_text().splitlines() for p in files]

    def cmd(self, index: int) -> List[str]:
        return self.calls()[index]


@pytest.fixture
def stub_toolchain(tmp_path, monkeypatch):
    """GCC-flavoured stub toolchain with the working directory set to tmp_path."""
    if sys.platform == "win32":
        pytest.skip("stub toolchain needs a POSIX shell")
    monkeypatch.chdir(tmp_path)
    (tmp_path / "foo.c").write_text("int foo(void) { return 1; }\n")
    return StubToolchain(tmp_path / "toolchain")


@pytest.fixture
def clang_toolchain(stub_toolchain):
    """Stub toolchain whose compilers report a Clang banner."""
    stub_toolchain.banner = CLANG_BANNER
    return stub_toolchain


@pytest.fixture
def msvc_toolchain(stub_toolchain):
    """Stub toolchain whose compilers report an MSVC banner."""
    stub_toolchain.banner = MSVC_BANNER
    return stub_toolchain
