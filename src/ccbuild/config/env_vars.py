"""Environment variable resolution.

This module decides which compiler, archiver and extra flags the environment
mandates for a target, before any process is spawned.

Lookup order for target-scoped variables (CC, CXX, AR, CFLAGS, CXXFLAGS):
    1. <VAR>_<target>             e.g. CC_x86_64-unknown-linux-gnu
    2. <VAR>_<target_underscored> e.g. CC_x86_64_unknown_linux_gnu
    3. HOST_<VAR> (target == host) or TARGET_<VAR> (cross compiling)
    4. <VAR>

Blank values are treated as unset.
"""

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from ..errors import UnsupportedTargetHostError
from .target import TargetTriple


class EnvVar:
    """Names of every environment variable ccbuild reads."""

    CC = "CC"
    CXX = "CXX"
    AR = "AR"
    CFLAGS = "CFLAGS"
    CXXFLAGS = "CXXFLAGS"
    PATH = "PATH"

    TARGET = "TARGET"
    HOST = "HOST"
    OPT_LEVEL = "OPT_LEVEL"
    DEBUG = "DEBUG"
    OUT_DIR = "OUT_DIR"
    NUM_JOBS = "NUM_JOBS"
    TARGET_FEATURES = "CARGO_CFG_TARGET_FEATURE"
    NO_DEFAULTS = "CRATE_CC_NO_DEFAULTS"
    DEBUG_OUTPUT = "CC_ENABLE_DEBUG_OUTPUT"

    VS_INSTALL_DIR = "VSINSTALLDIR"
    VS_VERSION = "VisualStudioVersion"

    TARGET_SCOPED = (CC, CXX, AR, CFLAGS, CXXFLAGS)


@dataclass
class ToolRequest:
    """A compiler or archiver request produced by the resolver.

    Attributes:
        words: Command words (program first, then extra arguments)
        origin: Where the request came from ("explicit", a variable name, or "default")
    """

    words: List[str] = field(default_factory=list)
    origin: str = "default"

    @property
    def is_default(self) -> bool:
        return self.origin == "default"

    @property
    def program(self) -> str:
        return self.words[0]


class EnvironmentResolver:
    """Resolves environment-mandated tools and flags for one target/host pair.

    Example usage:
        resolver = EnvironmentResolver(os.environ, target, host)
        request = resolver.resolve_compiler(cpp=False, cuda=False)
        print(request.words, request.origin)
    """

    def __init__(self, environ: Mapping[str, str], target: TargetTriple, host: TargetTriple):
        """Initialize resolver.

        Args:
            environ: Environment mapping to read (build overrides merged over os.environ)
            target: Target triple
            host: Host triple
        """
        self.environ = environ
        self.target = target
        self.host = host
        self.consulted: List[str] = []
        self.debug_output = bool(environ.get(EnvVar.DEBUG_OUTPUT))

    def get(self, name: str) -> Optional[str]:
        """Return a non-blank environment value, recording the lookup."""
        if name not in self.consulted:
            self.consulted.append(name)
        value = self.environ.get(name)
        if value is not None and not value.strip():
            value = None
        if self.debug_output:
            logging.info(f"{name} = {value!r}")
        return value

    def candidate_names(self, var: str) -> List[str]:
        """Return the variable names consulted for ``var``, highest precedence first."""
        scope = "HOST" if self.target.triple == self.host.triple else "TARGET"
        return [
            f"{var}_{self.target.triple}",
            f"{var}_{self.target.underscored}",
            f"{scope}_{var}",
            var,
        ]

    def getenv_with_target_prefixes(self, var: str) -> Optional[Tuple[str, str]]:
        """Look up a target-scoped variable.

        Returns:
            (variable name, value) of the first match, or None
        """
        for name in self.candidate_names(var):
            value = self.get(name)
            if value is not None:
                return name, value
        return None

    def flags(self, var: str) -> List[str]:
        """Return the flags mandated by a CFLAGS-style variable."""
        found = self.getenv_with_target_prefixes(var)
        if found is None:
            return []
        return shlex.split(found[1])

    def has_flags_env(self, cpp: bool) -> bool:
        """Whether the user supplied compiler flags through the environment."""
        var = EnvVar.CXXFLAGS if cpp else EnvVar.CFLAGS
        return self.getenv_with_target_prefixes(var) is not None

    def resolve_compiler(
        self,
        cpp: bool,
        cuda: bool,
        explicit: Optional[Path] = None
    ) -> ToolRequest:
        """Resolve the compiler command words.

        Args:
            cpp: Whether C++ is being compiled
            cuda: Whether CUDA is being compiled (implies C++)
            explicit: Compiler set directly on the build configuration

        Returns:
            ToolRequest describing the compiler

        Raises:
            UnsupportedTargetHostError: If nothing is configured and the target is unknown
        """
        if explicit is not None:
            return ToolRequest(words=[str(explicit)], origin="explicit")

        var = EnvVar.CXX if (cpp or cuda) else EnvVar.CC
        found = self.getenv_with_target_prefixes(var)
        if found is not None:
            name, value = found
            words = shlex.split(value)
            if words:
                return ToolRequest(words=words, origin=name)

        if cuda:
            self._require_known_target()
            return ToolRequest(words=["nvcc"])

        cc, cxx, _ = self._default_tools()
        return ToolRequest(words=[cxx if cpp else cc])

    def resolve_archiver(self, explicit: Optional[Path] = None) -> ToolRequest:
        """Resolve the archiver command words.

        Args:
            explicit: Archiver set directly on the build configuration

        Returns:
            ToolRequest describing the archiver

        Raises:
            UnsupportedTargetHostError: If nothing is configured and the target is unknown
        """
        if explicit is not None:
            return ToolRequest(words=[str(explicit)], origin="explicit")

        found = self.getenv_with_target_prefixes(EnvVar.AR)
        if found is not None:
            name, value = found
            words = shlex.split(value)
            if words:
                return ToolRequest(words=words, origin=name)

        _, _, ar = self._default_tools()
        return ToolRequest(words=[ar])

    def _require_known_target(self) -> None:
        if not self.target.is_known:
            raise UnsupportedTargetHostError(
                f"Target {self.target} (host {self.host}) does not map to any known "
                f"toolchain; set {EnvVar.CC}/{EnvVar.CXX} or an explicit compiler"
            )

    def _default_tools(self) -> Tuple[str, str, str]:
        self._require_known_target()
        return self.target.default_tools(self.host)
