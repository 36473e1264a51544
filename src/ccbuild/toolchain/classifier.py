"""Compiler family classification.

Executable names say little about a compiler (cross toolchains are renamed,
``cc`` is a symlink to anything), so the family is decided by running the
compiler with ``--version`` and reading its banner.
"""

import logging
import subprocess
import threading
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..errors import ToolNotFoundError, handle_keyboard_interrupt_properly
from .tool import ToolFamily

VERSION_QUERY = "--version"

# Banner fragments, checked in order; matched case-insensitively.
MSVC_MARKERS = ("microsoft (r)", "microsoft corporation")
# emcc reports "gcc/clang-like replacement" but takes GCC-style flags.
EMSCRIPTEN_MARKERS = ("emscripten", "emcc (")
CLANG_MARKERS = ("clang version", "apple llvm", "clang")
GNU_MARKERS = ("free software foundation", "gcc", "g++", "cuda compilation tools", "nvcc")


class ToolClassifier:
    """Classifies compilers into families, caching per resolved path.

    One classifier belongs to one terminal action; the cache is shared by
    every worker of that action.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        """Initialize classifier.

        Args:
            env: Environment for the version query process
        """
        self.env = dict(env) if env is not None else None
        self._cache: Dict[str, ToolFamily] = {}
        self._lock = threading.Lock()

    def classify(self, path: Path) -> ToolFamily:
        """Return the family of the compiler at ``path``.

        Args:
            path: Resolved compiler executable

        Returns:
            The compiler's family; GNU when the banner is not recognised

        Raises:
            ToolNotFoundError: If the executable cannot be run at all
        """
        key = str(path)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

            output = self._query(path)
            family = self.family_from_banner(output, path)
            if family is None:
                logging.warning(
                    f"Could not identify compiler family of {path}; assuming GNU-compatible flags"
                )
                family = ToolFamily.GNU

            logging.debug(f"Classified {path} as {family.value}")
            self._cache[key] = family
            return family

    def _query(self, path: Path) -> str:
        try:
            result = subprocess.run(
                [str(path), VERSION_QUERY],
                capture_output=True,
                text=True,
                env=self.env,
                stdin=subprocess.DEVNULL,
            )
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except OSError as e:
            raise ToolNotFoundError(f"Failed to run compiler {path}: {e}") from e

        return f"{result.stdout or ''}\n{result.stderr or ''}"

    @staticmethod
    def family_from_banner(output: str, path: Optional[Path] = None) -> Optional[ToolFamily]:
        """Map ``--version`` output to a family, or None if unrecognised."""
        text = output.lower()

        if any(marker in text for marker in MSVC_MARKERS):
            return ToolFamily.MSVC

        if any(marker in text for marker in EMSCRIPTEN_MARKERS):
            return ToolFamily.GNU

        if any(marker in text for marker in CLANG_MARKERS):
            # clang-cl reports a clang banner but speaks the MSVC dialect.
            if path is not None and path.stem.lower().endswith("clang-cl"):
                return ToolFamily.MSVC
            return ToolFamily.CLANG

        if any(marker in text for marker in GNU_MARKERS):
            return ToolFamily.GNU

        return None
