"""Flag Support Prober.

This module decides whether a compiler accepts a flag by compiling a minimal
source file with it.

Design:
    - Probe source written once per language into the output directory
    - Zero exit status means accepted; diagnostics are discarded
    - Results cached per (compiler path, flag) for one terminal action
"""

import logging
import subprocess
import threading
from pathlib import Path
from typing import Dict, Mapping, Tuple

from ..errors import IoFailureError, ProbeCompileFailedError, handle_keyboard_interrupt_properly
from ..toolchain.tool import Tool

PROBE_SOURCE = "int main(void) { return 0; }\n"


class FlagSupportProber:
    """Probes and caches compiler flag support.

    Example usage:
        prober = FlagSupportProber(Path("build"), os.environ, cpp=False, cuda=False)
        if prober.is_supported(tool, "-Wno-unused"):
            tool.args.append("-Wno-unused")
    """

    def __init__(self, out_dir: Path, env: Mapping[str, str], cpp: bool = False, cuda: bool = False):
        """Initialize flag prober.

        Args:
            out_dir: Directory receiving the probe source and object
            env: Environment the compiler runs with
            cpp: Probe with a C++ source
            cuda: Probe with a CUDA source
        """
        self.out_dir = out_dir
        self.env = env
        self.cpp = cpp
        self.cuda = cuda
        self._cache: Dict[Tuple[str, str], bool] = {}
        self._lock = threading.Lock()

    @property
    def source_name(self) -> str:
        if self.cuda:
            return "flag_check.cu"
        if self.cpp:
            return "flag_check.cpp"
        return "flag_check.c"

    def is_supported(self, tool: Tool, flag: str) -> bool:
        """Check whether ``tool`` accepts ``flag``.

        Args:
            tool: Compiler with its base arguments
            flag: Candidate flag

        Returns:
            True if a compile with the flag exits with status zero

        Raises:
            ProbeCompileFailedError: If the probe source cannot be written
            IoFailureError: If the compiler cannot be spawned
        """
        key = (str(tool.path), flag)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        supported = self._probe(tool, flag)

        with self._lock:
            self._cache.setdefault(key, supported)
            return self._cache[key]

    def _write_source(self) -> Path:
        source = self.out_dir / self.source_name
        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            source.write_text(PROBE_SOURCE)
        except OSError as e:
            raise ProbeCompileFailedError(f"Failed to write probe source {source}: {e}") from e
        return source

    def _probe(self, tool: Tool, flag: str) -> bool:
        source = self._write_source()
        obj = self.out_dir / "flag_check.o"

        cmd = tool.to_command() + [flag] + tool.compile_args(obj, source)
        env = dict(self.env)
        env.update(tool.env)

        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=env,
            )
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise
        except OSError as e:
            raise IoFailureError(f"Failed to run {tool.path} to probe {flag}: {e}") from e

        supported = result.returncode == 0
        logging.debug(f"Flag {flag} supported by {tool.path}: {supported}")
        return supported
